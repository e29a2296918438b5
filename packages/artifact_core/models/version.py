"""Version history models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from artifact_core.models.artifact import Variant, VariantContent


class ChangeType(str, Enum):
    """Why a version was appended."""

    ORIGINAL = "original"
    EDITED = "edited"
    RESTORED = "restored"
    REVISED = "revised"


class ArtifactVersion(BaseModel):
    """Immutable snapshot of an artifact's content."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    artifact_id: UUID
    version: int
    content: str
    title: str
    change_type: ChangeType
    change_summary: str | None = None
    variants: dict[Variant, VariantContent] = Field(default_factory=dict)
    selected_variant: Variant | None = None
    content_hash: str
    created_at: datetime


class StreamCommit(BaseModel):
    """Finalized output of one generation stream."""

    variants: dict[Variant, str]
    approaches: dict[Variant, str] = Field(default_factory=dict)
    title: str | None = None
    change_type: ChangeType | None = None
    change_summary: str | None = None


class RestoreRequest(BaseModel):
    """Optional context for a restore."""

    change_summary: str | None = None
