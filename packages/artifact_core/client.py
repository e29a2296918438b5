"""HTTP client for the collaboration API."""

from collections.abc import Callable
from typing import Any
from uuid import UUID

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from artifact_core.annotations.backend import CommentBackend
from artifact_core.config.schemas import APIClientConfig
from artifact_core.errors import (
    ArtifactNotFoundError,
    CommentNotFoundError,
    CommitConflictError,
    NotFoundError,
    RequestRejectedError,
    SchemaDriftError,
    StoreUnavailableError,
    VersionNotFoundError,
)
from artifact_core.models.artifact import (
    Artifact,
    ArtifactCreate,
    Conversation,
    ConversationCreate,
    Variant,
    VariantSelection,
)
from artifact_core.models.comment import Comment, CommentCreate, CommentUpdate
from artifact_core.models.version import ArtifactVersion, RestoreRequest, StreamCommit

logger = structlog.get_logger()


class CollabAPIClient(CommentBackend):
    """HTTP client for the collaboration API.

    Handles:
    - Conversation and artifact creation
    - Committing finished streams and restoring versions
    - Comment CRUD (usable as the annotation service backend)
    """

    def __init__(
        self,
        config: APIClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_wait: wait_base | None = None,
    ):
        """Initialize the API client.

        Args:
            config: API client settings
            transport: Custom httpx transport (tests use MockTransport)
            retry_wait: Override for the wait between network retries
        """
        self.config = config or APIClientConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.timeout = httpx.Timeout(self.config.timeout_seconds)
        self._transport = transport
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {
                "Content-Type": "application/json",
                "User-Agent": "artifact-collab-client/0.1.0",
            }
            if self.config.api_key:
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "CollabAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        not_found: Callable[[], NotFoundError] | None = None,
        artifact_id: UUID | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, retrying network failures, and map error statuses.

        Raises:
            NotFoundError: On 404, built by ``not_found`` when given
            CommitConflictError: On 409
            SchemaDriftError: On 422 with code ``schema_drift``
            StoreUnavailableError: On 5xx or when the network keeps failing
            RequestRejectedError: On any other error status
        """
        client = await self._get_client()

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((httpx.NetworkError, httpx.TimeoutException)),
                stop=stop_after_attempt(self.config.retry_attempts),
                wait=self._retry_wait,
                reraise=True,
            ):
                with attempt:
                    response = await client.request(method, path, **kwargs)
        except (httpx.NetworkError, httpx.TimeoutException) as e:
            logger.error("API unreachable", method=method, path=path, error=str(e))
            raise StoreUnavailableError(f"API unreachable: {e}") from e

        if response.is_success:
            return response

        detail = _detail(response)
        status_code = response.status_code
        logger.warning(
            "API error",
            method=method,
            path=path,
            status_code=status_code,
            detail=detail,
        )

        if status_code == 404:
            if not_found is not None:
                raise not_found()
            raise NotFoundError(str(detail.get("message", path)))
        if status_code == 409:
            raise CommitConflictError(artifact_id, str(detail.get("message", "")))
        if status_code == 422 and detail.get("code") == "schema_drift":
            raise SchemaDriftError(
                str(detail.get("message", "schema drift")),
                fields=detail.get("fields") or [],
            )
        if status_code >= 500:
            raise StoreUnavailableError(f"API error {status_code}: {detail}")

        raise RequestRejectedError(status_code, str(detail.get("message", detail)))

    # ------------------------------------------------------------------
    # Conversations and artifacts
    # ------------------------------------------------------------------

    async def create_conversation(self, title: str | None = None) -> Conversation:
        """Create a conversation."""
        response = await self._request(
            "POST",
            "/conversations",
            json=ConversationCreate(title=title).model_dump(mode="json"),
        )
        return Conversation(**response.json())

    async def create_artifact(self, data: ArtifactCreate) -> Artifact:
        """Create an artifact when generation begins."""
        response = await self._request(
            "POST", "/artifacts", json=data.model_dump(mode="json")
        )
        artifact = Artifact(**response.json())
        logger.info(
            "Artifact created",
            artifact_id=str(artifact.id),
            conversation_id=str(artifact.conversation_id),
        )
        return artifact

    async def get_artifact(self, artifact_id: UUID) -> Artifact:
        """Fetch an artifact."""
        response = await self._request(
            "GET",
            f"/artifacts/{artifact_id}",
            not_found=lambda: ArtifactNotFoundError(artifact_id),
        )
        return Artifact(**response.json())

    async def select_variant(self, artifact_id: UUID, variant: Variant) -> Artifact:
        """Change the selected variant of an artifact."""
        response = await self._request(
            "PUT",
            f"/artifacts/{artifact_id}/selected-variant",
            not_found=lambda: ArtifactNotFoundError(artifact_id),
            json=VariantSelection(variant=variant).model_dump(mode="json"),
        )
        return Artifact(**response.json())

    async def commit_stream(self, artifact_id: UUID, commit: StreamCommit) -> ArtifactVersion:
        """Commit the finalized output of a stream.

        Args:
            artifact_id: Artifact the stream was generating
            commit: Final variant and approach maps

        Returns:
            The appended version

        Raises:
            ArtifactNotFoundError: If the artifact does not exist
            CommitConflictError: If a concurrent write took the version number
            StoreUnavailableError: If the API cannot be reached
        """
        response = await self._request(
            "POST",
            f"/artifacts/{artifact_id}/commit",
            not_found=lambda: ArtifactNotFoundError(artifact_id),
            artifact_id=artifact_id,
            json=commit.model_dump(mode="json"),
        )
        version = ArtifactVersion(**response.json())
        logger.info(
            "Stream committed",
            artifact_id=str(artifact_id),
            version=version.version,
            change_type=version.change_type.value,
        )
        return version

    def committer_for(self, artifact_id: UUID):
        """Committer callable for a StreamSession generating this artifact."""

        async def commit(payload: StreamCommit) -> ArtifactVersion:
            return await self.commit_stream(artifact_id, payload)

        return commit

    async def list_versions(
        self, artifact_id: UUID, limit: int | None = None, before: int | None = None
    ) -> list[ArtifactVersion]:
        """List versions newest first."""
        params: dict[str, Any] = {}
        if limit is not None:
            params["limit"] = limit
        if before is not None:
            params["before"] = before
        response = await self._request(
            "GET",
            f"/artifacts/{artifact_id}/versions",
            not_found=lambda: ArtifactNotFoundError(artifact_id),
            params=params,
        )
        return [ArtifactVersion(**item) for item in response.json()]

    async def restore_version(
        self,
        artifact_id: UUID,
        version_id: UUID,
        change_summary: str | None = None,
    ) -> ArtifactVersion:
        """Restore a historical version as the new current version."""
        response = await self._request(
            "POST",
            f"/artifacts/{artifact_id}/versions/{version_id}/restore",
            not_found=lambda: VersionNotFoundError(artifact_id, version_id),
            artifact_id=artifact_id,
            json=RestoreRequest(change_summary=change_summary).model_dump(mode="json"),
        )
        version = ArtifactVersion(**response.json())
        logger.info(
            "Version restored",
            artifact_id=str(artifact_id),
            restored_from=str(version_id),
            version=version.version,
        )
        return version

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def list_comments(
        self,
        conversation_id: UUID,
        artifact_id: UUID | None = None,
        include_resolved: bool = True,
    ) -> list[Comment]:
        params: dict[str, Any] = {"include_resolved": include_resolved}
        if artifact_id is not None:
            params["artifact_id"] = str(artifact_id)
        response = await self._request(
            "GET", f"/conversations/{conversation_id}/comments", params=params
        )
        return [Comment(**item) for item in response.json()]

    async def create_comment(
        self, data: CommentCreate, fields: set[str] | None = None
    ) -> Comment:
        if fields is None:
            payload = data.model_dump(mode="json")
            params = {}
        else:
            payload = data.reduced(fields | {"conversation_id"})
            params = {"reduced": True}
        response = await self._request(
            "POST",
            f"/conversations/{data.conversation_id}/comments",
            json=payload,
            params=params,
        )
        return Comment(**response.json())

    async def update_comment(self, comment_id: UUID, changes: CommentUpdate) -> Comment:
        response = await self._request(
            "PATCH",
            f"/comments/{comment_id}",
            not_found=lambda: CommentNotFoundError(comment_id),
            json=changes.model_dump(mode="json", exclude_unset=True),
        )
        return Comment(**response.json())

    async def delete_comment(self, comment_id: UUID) -> None:
        await self._request(
            "DELETE",
            f"/comments/{comment_id}",
            not_found=lambda: CommentNotFoundError(comment_id),
        )


def _detail(response: httpx.Response) -> dict[str, Any]:
    """Error detail from a FastAPI error body."""
    try:
        body = response.json()
    except ValueError:
        return {"message": response.text}
    detail = body.get("detail", body) if isinstance(body, dict) else body
    if isinstance(detail, dict):
        return detail
    return {"message": detail}
