"""Pydantic models for the artifact collaboration engine."""

from artifact_core.models.artifact import (
    APPROVAL_TRANSITIONS,
    DEFAULT_VARIANT,
    VARIANT_PRIORITY,
    ApprovalRequest,
    ApprovalStatus,
    Artifact,
    ArtifactCreate,
    ArtifactKind,
    ArtifactStatus,
    ArtifactSummary,
    ArtifactUpdate,
    Conversation,
    ConversationCreate,
    Variant,
    VariantContent,
    VariantEdit,
    VariantSelection,
)
from artifact_core.models.comment import (
    Comment,
    CommentCounts,
    CommentCreate,
    CommentPriority,
    CommentUpdate,
)
from artifact_core.models.realtime import ChangeEvent, ChangeOperation
from artifact_core.models.version import (
    ArtifactVersion,
    ChangeType,
    RestoreRequest,
    StreamCommit,
)

__all__ = [
    "APPROVAL_TRANSITIONS",
    "DEFAULT_VARIANT",
    "VARIANT_PRIORITY",
    "ApprovalRequest",
    "ApprovalStatus",
    "Artifact",
    "ArtifactCreate",
    "ArtifactKind",
    "ArtifactStatus",
    "ArtifactSummary",
    "ArtifactUpdate",
    "Conversation",
    "ConversationCreate",
    "Variant",
    "VariantContent",
    "VariantEdit",
    "VariantSelection",
    "Comment",
    "CommentCounts",
    "CommentCreate",
    "CommentPriority",
    "CommentUpdate",
    "ChangeEvent",
    "ChangeOperation",
    "ArtifactVersion",
    "ChangeType",
    "RestoreRequest",
    "StreamCommit",
]
