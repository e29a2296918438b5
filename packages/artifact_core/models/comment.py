"""Comment Pydantic models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from artifact_core.models.artifact import Variant


class CommentPriority(str, Enum):
    """Comment priority."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class Comment(BaseModel):
    """A threaded, assignable comment on a conversation or artifact.

    ``quoted_text`` is captured once at creation and never re-derived from
    the artifact, so it survives later edits of the quoted content.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    content: str
    quoted_text: str | None = None
    author_id: str
    assigned_to: str | None = None
    priority: CommentPriority = CommentPriority.NORMAL
    resolved: bool = False
    parent_comment_id: UUID | None = None
    artifact_id: UUID | None = None
    artifact_variant: Variant | None = None
    client_ref: UUID | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        # Some stores return naive timestamps; they are UTC
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def correlation_key(self) -> UUID:
        """Key that matches an optimistic record to its stored row."""
        return self.client_ref or self.id


class CommentCreate(BaseModel):
    """Schema for creating a comment."""

    conversation_id: UUID
    content: str = Field(min_length=1)
    author_id: str
    quoted_text: str | None = None
    assigned_to: str | None = None
    priority: CommentPriority = CommentPriority.NORMAL
    parent_comment_id: UUID | None = None
    artifact_id: UUID | None = None
    artifact_variant: Variant | None = None
    client_ref: UUID | None = None

    def reduced(self, keep: set[str]) -> dict[str, Any]:
        """Payload limited to the given fields, for schema-drift fallback writes."""
        return self.model_dump(mode="json", include=keep)


class CommentUpdate(BaseModel):
    """Fields a collaborator may change on an existing comment."""

    resolved: bool | None = None
    assigned_to: str | None = None
    priority: CommentPriority | None = None


class CommentCounts(BaseModel):
    """Open/resolved comment counts."""

    open: int = 0
    resolved: int = 0
