"""Exception hierarchy for the artifact collaboration engine."""

from uuid import UUID


class ArtifactCoreError(Exception):
    """Base class for all engine errors."""


class NotFoundError(ArtifactCoreError):
    """A requested record does not exist."""


class ArtifactNotFoundError(NotFoundError):
    """Artifact does not exist."""

    def __init__(self, artifact_id: UUID):
        self.artifact_id = artifact_id
        super().__init__(f"Artifact not found: {artifact_id}")


class VersionNotFoundError(NotFoundError):
    """Version does not exist for the given artifact."""

    def __init__(self, artifact_id: UUID, version_id: UUID):
        self.artifact_id = artifact_id
        self.version_id = version_id
        super().__init__(f"Version {version_id} not found for artifact {artifact_id}")


class CommentNotFoundError(NotFoundError):
    """Comment does not exist."""

    def __init__(self, comment_id: UUID):
        self.comment_id = comment_id
        super().__init__(f"Comment not found: {comment_id}")


class CommitConflictError(ArtifactCoreError):
    """A concurrent write won the race for a version number.

    Nothing was written. The caller must re-read and retry.
    """

    def __init__(self, artifact_id: UUID, detail: str = ""):
        self.artifact_id = artifact_id
        message = f"Concurrent commit conflict on artifact {artifact_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StoreUnavailableError(ArtifactCoreError):
    """The persistent store (or the API in front of it) could not be reached."""


class SchemaDriftError(StoreUnavailableError):
    """The store rejected a write because of an unknown or missing field."""

    def __init__(self, message: str, fields: list[str] | None = None):
        self.fields = fields or []
        super().__init__(message)


class ChannelDisconnectedError(ArtifactCoreError):
    """The realtime subscription was dropped by the channel."""


class InvalidTransitionError(ArtifactCoreError):
    """Illegal approval workflow transition."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move approval status from {current} to {target}")


class RequestRejectedError(ArtifactCoreError):
    """The API refused a request (authentication, permission or validation)."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        text = f"Request rejected with status {status_code}"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)
