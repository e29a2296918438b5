"""SQLAlchemy database models."""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")

VARIANT_ENUM = Enum("a", "b", "c", name="variant_enum")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Conversation(Base):
    """Conversation/document owning artifacts and comments."""

    __tablename__ = "conversations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    # Relationships
    artifacts: Mapped[list["Artifact"]] = relationship(
        back_populates="conversation", cascade="all, delete-orphan"
    )
    comments: Mapped[list["Comment"]] = relationship(
        back_populates="conversation", cascade="all, delete-orphan"
    )


class Artifact(Base):
    """Generated artifact with up to three variants."""

    __tablename__ = "artifacts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), index=True
    )
    kind: Mapped[str] = mapped_column(
        Enum(
            "email",
            "flow",
            "campaign",
            "template",
            "subject_lines",
            "content_brief",
            name="artifact_kind_enum",
        ),
        default="email",
    )
    title: Mapped[str] = mapped_column(String(255))

    # Variant contents
    version_a_content: Mapped[str | None] = mapped_column(Text)
    version_a_approach: Mapped[str | None] = mapped_column(Text)
    version_b_content: Mapped[str | None] = mapped_column(Text)
    version_b_approach: Mapped[str | None] = mapped_column(Text)
    version_c_content: Mapped[str | None] = mapped_column(Text)
    version_c_approach: Mapped[str | None] = mapped_column(Text)
    selected_variant: Mapped[str] = mapped_column(VARIANT_ENUM, default="a")

    # Incremented atomically with every appended version
    version_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    status: Mapped[str] = mapped_column(
        Enum("draft", "final", "archived", name="artifact_status_enum"),
        default="draft",
    )
    approval_status: Mapped[str] = mapped_column(
        Enum(
            "draft",
            "pending_review",
            "approved",
            "rejected",
            name="approval_status_enum",
        ),
        default="draft",
    )
    approved_by: Mapped[str | None] = mapped_column(String(255))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejection_notes: Mapped[str | None] = mapped_column(Text)
    share_token: Mapped[str | None] = mapped_column(String(64), unique=True, index=True)
    source_message_id: Mapped[str | None] = mapped_column(String(255))
    created_by: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship(back_populates="artifacts")
    versions: Mapped[list["ArtifactVersion"]] = relationship(
        back_populates="artifact", cascade="all, delete-orphan"
    )

    def variant_map(self) -> dict[str, dict[str, str | None]]:
        """Variants that have content, keyed by variant letter."""
        result = {}
        for variant in ("a", "b", "c"):
            content = getattr(self, f"version_{variant}_content")
            if content is not None:
                result[variant] = {
                    "content": content,
                    "approach": getattr(self, f"version_{variant}_approach"),
                }
        return result

    def set_variants(self, variants: dict[str, dict[str, str | None]]) -> None:
        """Replace the whole variant map; variants not given are cleared."""
        for variant in ("a", "b", "c"):
            entry = variants.get(variant)
            setattr(self, f"version_{variant}_content", entry["content"] if entry else None)
            setattr(self, f"version_{variant}_approach", entry.get("approach") if entry else None)


class ArtifactVersion(Base):
    """Immutable version snapshot. Rows are only ever inserted."""

    __tablename__ = "artifact_versions"
    __table_args__ = (
        UniqueConstraint("artifact_id", "version", name="uq_artifact_versions_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    artifact_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("artifacts.id", ondelete="CASCADE"), index=True
    )
    version: Mapped[int] = mapped_column(Integer)
    content: Mapped[str] = mapped_column(Text)
    title: Mapped[str] = mapped_column(String(255))
    change_type: Mapped[str] = mapped_column(
        Enum("original", "edited", "restored", "revised", name="change_type_enum")
    )
    change_summary: Mapped[str | None] = mapped_column(Text)
    variants: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    selected_variant: Mapped[str | None] = mapped_column(VARIANT_ENUM)
    content_hash: Mapped[str] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    # Relationships
    artifact: Mapped["Artifact"] = relationship(back_populates="versions")


class Comment(Base):
    """Threaded comment on a conversation, optionally tied to an artifact."""

    __tablename__ = "comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), index=True
    )
    content: Mapped[str] = mapped_column(Text)
    quoted_text: Mapped[str | None] = mapped_column(Text)
    author_id: Mapped[str] = mapped_column(String(255))
    assigned_to: Mapped[str | None] = mapped_column(String(255), index=True)
    # Server-side defaults only, so reduced-shape inserts can omit them
    priority: Mapped[str] = mapped_column(
        Enum("low", "normal", "high", "urgent", name="comment_priority_enum"),
        server_default="normal",
    )
    resolved: Mapped[bool] = mapped_column(Boolean, server_default=false())
    parent_comment_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("comments.id", ondelete="SET NULL")
    )
    client_ref: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)
    # Carries artifact_id / artifact_variant
    comment_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=_utcnow
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship(back_populates="comments")
