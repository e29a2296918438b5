"""Artifact store: canonical artifact records and stream commits."""

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from artifact_core.config.schemas import CleanupConfig
from artifact_core.errors import (
    ArtifactNotFoundError,
    CommitConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from artifact_core.models.artifact import (
    APPROVAL_TRANSITIONS,
    VARIANT_PRIORITY,
    ApprovalRequest,
    ApprovalStatus,
    ArtifactCreate,
    ArtifactSummary,
    ArtifactUpdate,
    Variant,
    VariantEdit,
)
from artifact_core.models.artifact import Artifact as ArtifactSchema
from artifact_core.models.realtime import ChangeEvent, ChangeOperation
from artifact_core.models.version import ArtifactVersion as ArtifactVersionSchema
from artifact_core.models.version import ChangeType, StreamCommit
from artifact_core.realtime.hub import RealtimeChannel, get_realtime_hub
from artifact_core.streaming.cleanup import clean_content, extract_approach
from config import get_engine_config, get_settings
from database.models import Artifact, Conversation
from database.session import get_async_db
from services.version_log import VersionHistoryLog, to_version_schema

logger = structlog.get_logger()

ARTIFACTS_TABLE = "artifacts"


@dataclass(frozen=True)
class VariantView:
    """Display content of a variant after fallback and cleanup."""

    variant: Variant | None
    content: str
    approach: str | None
    is_fallback: bool


def to_artifact_schema(record: Artifact) -> ArtifactSchema:
    """Convert an artifact row to its API model."""
    return ArtifactSchema(
        id=record.id,
        conversation_id=record.conversation_id,
        kind=record.kind,
        title=record.title,
        variants=record.variant_map(),
        selected_variant=record.selected_variant,
        version_count=record.version_count,
        status=record.status,
        approval_status=record.approval_status,
        approved_by=record.approved_by,
        approved_at=record.approved_at,
        rejection_notes=record.rejection_notes,
        share_token=record.share_token,
        source_message_id=record.source_message_id,
        created_by=record.created_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _primary(variants: dict[str, dict], selected: str) -> tuple[str, str]:
    """Selected variant if it has content, else the first in priority order."""
    if selected in variants:
        return selected, variants[selected]["content"]
    for variant in VARIANT_PRIORITY:
        if variant.value in variants:
            return variant.value, variants[variant.value]["content"]
    return selected, ""


class ArtifactStore:
    """Canonical record of artifacts and their variant contents."""

    def __init__(
        self,
        db: AsyncSession,
        channel: RealtimeChannel | None = None,
        cleanup: CleanupConfig | None = None,
        page_size: int = 50,
    ) -> None:
        """Initialize the store.

        Args:
            db: Database session
            channel: Realtime channel notified after every committed change
            cleanup: Display cleanup options for variant reads
            page_size: Page size for the version history log
        """
        self.db = db
        self.channel = channel
        self.cleanup = cleanup or CleanupConfig()
        self.versions = VersionHistoryLog(db, page_size=page_size)

    async def _get_record(self, artifact_id: UUID) -> Artifact:
        result = await self.db.execute(select(Artifact).where(Artifact.id == artifact_id))
        record = result.scalar_one_or_none()
        if record is None:
            raise ArtifactNotFoundError(artifact_id)
        return record

    async def _publish(self, record: Artifact, operation: ChangeOperation) -> None:
        if self.channel is None:
            return
        await self.channel.publish(
            ChangeEvent(
                operation=operation,
                table=ARTIFACTS_TABLE,
                conversation_id=record.conversation_id,
                row={
                    "id": str(record.id),
                    "version_count": record.version_count,
                    "selected_variant": record.selected_variant,
                },
            )
        )

    async def _commit(self, artifact_id: UUID) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise CommitConflictError(artifact_id, "concurrent write") from e

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create(self, data: ArtifactCreate) -> ArtifactSchema:
        """Create an artifact when generation begins (no versions yet)."""
        conversation = await self.db.get(Conversation, data.conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation not found: {data.conversation_id}")

        record = Artifact(
            conversation_id=data.conversation_id,
            kind=data.kind.value,
            title=data.title,
            source_message_id=data.source_message_id,
            created_by=data.created_by,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)

        logger.info(
            "Artifact created",
            artifact_id=str(record.id),
            conversation_id=str(record.conversation_id),
        )
        await self._publish(record, ChangeOperation.INSERT)
        return to_artifact_schema(record)

    async def get(self, artifact_id: UUID) -> ArtifactSchema:
        """Get an artifact by ID."""
        return to_artifact_schema(await self._get_record(artifact_id))

    async def list_for_conversation(self, conversation_id: UUID) -> list[ArtifactSummary]:
        """List artifacts of a conversation, most recently updated first."""
        result = await self.db.execute(
            select(Artifact)
            .where(Artifact.conversation_id == conversation_id)
            .order_by(Artifact.updated_at.desc())
        )
        return [
            ArtifactSummary(
                id=a.id,
                conversation_id=a.conversation_id,
                kind=a.kind,
                title=a.title,
                selected_variant=a.selected_variant,
                version_count=a.version_count,
                approval_status=a.approval_status,
                updated_at=a.updated_at,
            )
            for a in result.scalars().all()
        ]

    async def update(self, artifact_id: UUID, data: ArtifactUpdate) -> ArtifactSchema:
        """Update title/status. Never appends a version."""
        record = await self._get_record(artifact_id)
        update_dict = data.model_dump(exclude_unset=True, exclude_none=True, mode="json")
        for field, value in update_dict.items():
            setattr(record, field, value)
        await self.db.commit()
        await self.db.refresh(record)
        await self._publish(record, ChangeOperation.UPDATE)
        return to_artifact_schema(record)

    async def delete(self, artifact_id: UUID) -> None:
        """Delete an artifact together with its history."""
        record = await self._get_record(artifact_id)
        await self.db.delete(record)
        await self.db.commit()
        logger.info("Artifact deleted", artifact_id=str(artifact_id))
        await self._publish(record, ChangeOperation.DELETE)

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    async def get_variant_content(
        self, artifact_id: UUID, variant: Variant, clean: bool = True
    ) -> VariantView:
        """Content of a variant, falling back in priority order when unset.

        Args:
            artifact_id: Artifact to read
            variant: Requested variant
            clean: Apply display cleanup (stored content is not changed)

        Returns:
            VariantView; content is empty when no variant has content
        """
        record = await self._get_record(artifact_id)
        variants = record.variant_map()

        chosen = variant.value if variant.value in variants else None
        if chosen is None:
            chosen = next((v.value for v in VARIANT_PRIORITY if v.value in variants), None)
        if chosen is None:
            return VariantView(variant=None, content="", approach=None, is_fallback=False)

        entry = variants[chosen]
        content = entry["content"]
        if clean:
            content = clean_content(
                content,
                strip_code_fences=self.cleanup.strip_code_fences,
                strip_approach=self.cleanup.strip_approach_line,
            )
        return VariantView(
            variant=Variant(chosen),
            content=content,
            approach=entry["approach"],
            is_fallback=chosen != variant.value,
        )

    async def set_selected_variant(self, artifact_id: UUID, variant: Variant) -> ArtifactSchema:
        """Change the selected variant. Metadata only; history is untouched."""
        record = await self._get_record(artifact_id)
        record.selected_variant = variant.value
        await self.db.commit()
        await self.db.refresh(record)
        logger.debug("Variant selected", artifact_id=str(artifact_id), variant=variant.value)
        await self._publish(record, ChangeOperation.UPDATE)
        return to_artifact_schema(record)

    async def _write_version(
        self,
        record: Artifact,
        variants: dict[str, dict],
        change_type: ChangeType | None,
        change_summary: str | None,
    ) -> ArtifactVersionSchema:
        selected, primary = _primary(variants, record.selected_variant)
        record.set_variants(variants)
        record.selected_variant = selected

        version = await self.versions.append(
            record.id,
            content=primary,
            title=record.title,
            change_type=change_type,
            variants=variants,
            selected_variant=selected,
            change_summary=change_summary,
        )
        await self._commit(record.id)
        await self._publish(record, ChangeOperation.UPDATE)
        return to_version_schema(version)

    async def commit_streamed_content(
        self, artifact_id: UUID, commit: StreamCommit
    ) -> ArtifactVersionSchema:
        """Finalize a completed stream into the artifact and its history.

        The whole variant map is replaced; variants absent from the commit are
        cleared. The first commit of an artifact is recorded as ``original``,
        later ones as the given change type or ``revised``.

        Args:
            artifact_id: Artifact the stream was generating
            commit: Final variant and approach maps

        Returns:
            The appended version

        Raises:
            ArtifactNotFoundError: If the artifact does not exist
            CommitConflictError: If a concurrent write took the version number
        """
        record = await self._get_record(artifact_id)
        if commit.title:
            record.title = commit.title

        variants = {}
        for variant, content in commit.variants.items():
            approach = commit.approaches.get(variant) or extract_approach(
                content, legacy=False
            )
            variants[variant.value] = {"content": content, "approach": approach}

        change_type = commit.change_type
        if record.version_count == 0:
            change_type = None

        version = await self._write_version(
            record, variants, change_type, commit.change_summary
        )
        logger.info(
            "Stream committed",
            artifact_id=str(artifact_id),
            version=version.version,
            variants=sorted(variants),
        )
        return version

    async def edit_variant(
        self, artifact_id: UUID, variant: Variant, edit: VariantEdit
    ) -> ArtifactVersionSchema:
        """Replace one variant's content wholesale and append an ``edited`` version."""
        record = await self._get_record(artifact_id)
        variants = record.variant_map()
        previous = variants.get(variant.value, {})
        variants[variant.value] = {
            "content": edit.content,
            "approach": edit.approach if edit.approach is not None else previous.get("approach"),
        }
        version = await self._write_version(
            record, variants, ChangeType.EDITED, edit.change_summary
        )
        logger.info(
            "Variant edited",
            artifact_id=str(artifact_id),
            variant=variant.value,
            version=version.version,
        )
        return version

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    async def transition_approval(
        self, artifact_id: UUID, request: ApprovalRequest
    ) -> ArtifactSchema:
        """Move the approval workflow. Metadata only.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        record = await self._get_record(artifact_id)
        current = ApprovalStatus(record.approval_status)
        if request.status not in APPROVAL_TRANSITIONS[current]:
            raise InvalidTransitionError(current.value, request.status.value)

        record.approval_status = request.status.value
        if request.status == ApprovalStatus.APPROVED:
            record.approved_by = request.actor
            record.approved_at = datetime.now(timezone.utc)
            record.rejection_notes = None
        elif request.status == ApprovalStatus.REJECTED:
            record.rejection_notes = request.notes
            record.approved_by = None
            record.approved_at = None
        else:
            record.approved_by = None
            record.approved_at = None

        await self.db.commit()
        await self.db.refresh(record)
        logger.info(
            "Approval status changed",
            artifact_id=str(artifact_id),
            previous=current.value,
            status=request.status.value,
            actor=request.actor,
        )
        await self._publish(record, ChangeOperation.UPDATE)
        return to_artifact_schema(record)

    async def duplicate(self, artifact_id: UUID, created_by: str | None = None) -> ArtifactSchema:
        """Copy an artifact's current contents into a new artifact at version 1."""
        source = await self._get_record(artifact_id)
        variants = source.variant_map()

        duplicate_record = Artifact(
            conversation_id=source.conversation_id,
            kind=source.kind,
            title=f"{source.title} (Copy)",
            selected_variant=source.selected_variant,
            source_message_id=source.source_message_id,
            created_by=created_by or source.created_by,
        )
        self.db.add(duplicate_record)
        await self.db.flush()

        if variants:
            await self._write_version(duplicate_record, variants, None, f"Duplicated from {source.id}")
        else:
            await self.db.commit()
        await self.db.refresh(duplicate_record)

        logger.info("Artifact duplicated", source_id=str(artifact_id), artifact_id=str(duplicate_record.id))
        return to_artifact_schema(duplicate_record)

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    async def share(self, artifact_id: UUID) -> str:
        """Get or create the share token of an artifact."""
        record = await self._get_record(artifact_id)
        if record.share_token is None:
            record.share_token = secrets.token_urlsafe(24)
            await self.db.commit()
            logger.info("Artifact shared", artifact_id=str(artifact_id))
        return record.share_token

    async def revoke_share(self, artifact_id: UUID) -> None:
        """Invalidate the share token of an artifact."""
        record = await self._get_record(artifact_id)
        record.share_token = None
        await self.db.commit()
        logger.info("Artifact share revoked", artifact_id=str(artifact_id))

    async def get_shared(self, token: str) -> ArtifactSchema:
        """Get an artifact by its share token."""
        result = await self.db.execute(select(Artifact).where(Artifact.share_token == token))
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("Shared artifact not found")
        return to_artifact_schema(record)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def restore_version(
        self,
        artifact_id: UUID,
        version_id: UUID,
        change_summary: str | None = None,
    ) -> ArtifactVersionSchema:
        """Restore a historical version and notify viewers."""
        version = await self.versions.restore(artifact_id, version_id, change_summary)
        await self._publish(await self._get_record(artifact_id), ChangeOperation.UPDATE)
        return version


def get_artifact_store(db: AsyncSession = Depends(get_async_db)) -> ArtifactStore:
    """Dependency providing an ArtifactStore bound to the request session."""
    return ArtifactStore(
        db,
        channel=get_realtime_hub(),
        cleanup=get_engine_config().cleanup,
        page_size=get_settings().history_page_size,
    )
