"""Artifact Pydantic models for generated content with A/B/C variants."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class Variant(str, Enum):
    """One of the parallel content options generated for an artifact."""

    A = "a"
    B = "b"
    C = "c"


# Display fallback order when the requested variant has no content
VARIANT_PRIORITY: tuple[Variant, ...] = (Variant.A, Variant.B, Variant.C)

# Untagged model output is stored under this variant
DEFAULT_VARIANT = Variant.A


class ArtifactKind(str, Enum):
    """Kind of generated artifact."""

    EMAIL = "email"
    FLOW = "flow"
    CAMPAIGN = "campaign"
    TEMPLATE = "template"
    SUBJECT_LINES = "subject_lines"
    CONTENT_BRIEF = "content_brief"


class ArtifactStatus(str, Enum):
    """Lifecycle status of an artifact."""

    DRAFT = "draft"
    FINAL = "final"
    ARCHIVED = "archived"


class ApprovalStatus(str, Enum):
    """Review workflow status."""

    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


# Allowed approval transitions: current -> reachable targets
APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.DRAFT: frozenset({ApprovalStatus.PENDING_REVIEW}),
    ApprovalStatus.PENDING_REVIEW: frozenset(
        {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED}
    ),
    ApprovalStatus.APPROVED: frozenset({ApprovalStatus.DRAFT}),
    ApprovalStatus.REJECTED: frozenset(
        {ApprovalStatus.PENDING_REVIEW, ApprovalStatus.DRAFT}
    ),
}


class VariantContent(BaseModel):
    """Content of a single variant."""

    content: str
    approach: str | None = None


class Artifact(BaseModel):
    """Artifact with its current variant contents."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    kind: ArtifactKind = ArtifactKind.EMAIL
    title: str
    variants: dict[Variant, VariantContent] = Field(default_factory=dict)
    selected_variant: Variant = DEFAULT_VARIANT
    version_count: int = 0
    status: ArtifactStatus = ArtifactStatus.DRAFT
    approval_status: ApprovalStatus = ApprovalStatus.DRAFT
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_notes: str | None = None
    share_token: str | None = None
    source_message_id: str | None = None
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime

    def available_variants(self) -> list[Variant]:
        """Variants with content, in priority order."""
        return [v for v in VARIANT_PRIORITY if v in self.variants]


class ArtifactCreate(BaseModel):
    """Schema for creating a new artifact when generation begins."""

    conversation_id: UUID
    title: str
    kind: ArtifactKind = ArtifactKind.EMAIL
    source_message_id: str | None = None
    created_by: str | None = None


class ArtifactUpdate(BaseModel):
    """Schema for metadata updates (never touches version history)."""

    title: str | None = None
    status: ArtifactStatus | None = None


class VariantSelection(BaseModel):
    """Request to change the selected variant."""

    variant: Variant


class VariantEdit(BaseModel):
    """User edit replacing one variant's content wholesale."""

    content: str
    approach: str | None = None
    change_summary: str | None = None


class ApprovalRequest(BaseModel):
    """Approval workflow transition request."""

    status: ApprovalStatus
    actor: str | None = None
    notes: str | None = None


class ArtifactSummary(BaseModel):
    """Summary of artifact for list views."""

    id: UUID
    conversation_id: UUID
    kind: ArtifactKind
    title: str
    selected_variant: Variant
    version_count: int
    approval_status: ApprovalStatus
    updated_at: datetime


class Conversation(BaseModel):
    """Owning conversation/document."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str | None = None
    created_at: datetime


class ConversationCreate(BaseModel):
    """Schema for creating a conversation."""

    title: str | None = None
