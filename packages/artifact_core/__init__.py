"""Artifact streaming, versioning and collaboration engine."""

from artifact_core.errors import (
    ArtifactCoreError,
    ArtifactNotFoundError,
    ChannelDisconnectedError,
    CommentNotFoundError,
    CommitConflictError,
    InvalidTransitionError,
    NotFoundError,
    RequestRejectedError,
    SchemaDriftError,
    StoreUnavailableError,
    VersionNotFoundError,
)
from artifact_core.models.artifact import Artifact, Variant
from artifact_core.models.comment import Comment
from artifact_core.models.version import ArtifactVersion, ChangeType, StreamCommit
from artifact_core.streaming import (
    StreamSession,
    VariantSelector,
    clean_content,
    parse_stream,
)
from artifact_core.annotations import CollaborativeAnnotationService
from artifact_core.realtime import RealtimeHub

__version__ = "0.1.0"

__all__ = [
    # Errors
    "ArtifactCoreError",
    "ArtifactNotFoundError",
    "ChannelDisconnectedError",
    "CommentNotFoundError",
    "CommitConflictError",
    "InvalidTransitionError",
    "NotFoundError",
    "RequestRejectedError",
    "SchemaDriftError",
    "StoreUnavailableError",
    "VersionNotFoundError",
    # Models
    "Artifact",
    "ArtifactVersion",
    "ChangeType",
    "Comment",
    "StreamCommit",
    "Variant",
    # Engine
    "CollaborativeAnnotationService",
    "RealtimeHub",
    "StreamSession",
    "VariantSelector",
    "clean_content",
    "parse_stream",
]
