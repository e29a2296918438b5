"""Append-only version history for artifacts."""

from collections.abc import AsyncIterator
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from artifact_core.errors import (
    ArtifactNotFoundError,
    CommitConflictError,
    VersionNotFoundError,
)
from artifact_core.models.version import ArtifactVersion as ArtifactVersionSchema
from artifact_core.models.version import ChangeType
from artifact_core.utils.hashing import compute_text_hash, verify_text_hash
from database.models import Artifact, ArtifactVersion

logger = structlog.get_logger()


def to_version_schema(record: ArtifactVersion) -> ArtifactVersionSchema:
    """Convert a version row to its API model."""
    return ArtifactVersionSchema.model_validate(record)


class VersionHistoryLog:
    """Version history of artifacts, backed by the artifact_versions table.

    Versions are never updated in place. Version numbers come from an atomic
    increment of ``artifacts.version_count`` executed in the same
    transaction as the insert, and the ``(artifact_id, version)`` unique
    constraint turns any collision into a CommitConflictError.
    """

    def __init__(self, db: AsyncSession, page_size: int = 50) -> None:
        """Initialize the log.

        Args:
            db: Database session; the caller owns the transaction
            page_size: Rows fetched per page when listing lazily
        """
        self.db = db
        self.page_size = page_size

    async def _allocate(self, artifact_id: UUID) -> int:
        """Atomically reserve the next version number for an artifact."""
        result = await self.db.execute(
            update(Artifact)
            .where(Artifact.id == artifact_id)
            .values(version_count=Artifact.version_count + 1)
            .returning(Artifact.version_count)
        )
        number = result.scalar_one_or_none()
        if number is None:
            raise ArtifactNotFoundError(artifact_id)
        return number

    async def append(
        self,
        artifact_id: UUID,
        content: str,
        title: str,
        change_type: ChangeType | None = None,
        variants: dict[str, Any] | None = None,
        selected_variant: str | None = None,
        change_summary: str | None = None,
    ) -> ArtifactVersion:
        """Append a version. Flushes but does not commit.

        Args:
            artifact_id: Owning artifact
            content: Primary content snapshot
            title: Title snapshot
            change_type: Why the version exists; None means ``original`` for
                the first version and ``revised`` afterwards
            variants: Snapshot of the full variant map
            selected_variant: Selected variant at the time of the snapshot
            change_summary: Optional human-readable summary

        Returns:
            The new version row

        Raises:
            ArtifactNotFoundError: If the artifact does not exist
            CommitConflictError: If the version number is already taken
        """
        number = await self._allocate(artifact_id)
        if change_type is None:
            change_type = ChangeType.ORIGINAL if number == 1 else ChangeType.REVISED

        record = ArtifactVersion(
            artifact_id=artifact_id,
            version=number,
            content=content,
            title=title,
            change_type=change_type.value,
            change_summary=change_summary,
            variants=variants or {},
            selected_variant=selected_variant,
            content_hash=compute_text_hash(content),
        )
        self.db.add(record)

        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Version number collision",
                artifact_id=str(artifact_id),
                version=number,
            )
            raise CommitConflictError(artifact_id, f"version {number} already exists") from e

        logger.info(
            "Version appended",
            artifact_id=str(artifact_id),
            version=number,
            change_type=change_type.value,
        )
        return record

    async def _get_record(self, artifact_id: UUID, version_id: UUID) -> ArtifactVersion:
        result = await self.db.execute(
            select(ArtifactVersion).where(
                ArtifactVersion.id == version_id,
                ArtifactVersion.artifact_id == artifact_id,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise VersionNotFoundError(artifact_id, version_id)
        return record

    async def _ensure_artifact(self, artifact_id: UUID) -> Artifact:
        result = await self.db.execute(select(Artifact).where(Artifact.id == artifact_id))
        artifact = result.scalar_one_or_none()
        if artifact is None:
            raise ArtifactNotFoundError(artifact_id)
        return artifact

    async def get(self, artifact_id: UUID, version_id: UUID) -> ArtifactVersionSchema:
        """Get one version of an artifact."""
        return to_version_schema(await self._get_record(artifact_id, version_id))

    async def current(self, artifact_id: UUID) -> ArtifactVersionSchema | None:
        """Get the highest-numbered version, or None if nothing was committed."""
        await self._ensure_artifact(artifact_id)
        result = await self.db.execute(
            select(ArtifactVersion)
            .where(ArtifactVersion.artifact_id == artifact_id)
            .order_by(ArtifactVersion.version.desc())
            .limit(1)
        )
        record = result.scalar_one_or_none()
        return to_version_schema(record) if record is not None else None

    async def page(
        self,
        artifact_id: UUID,
        limit: int | None = None,
        before: int | None = None,
    ) -> list[ArtifactVersionSchema]:
        """One page of versions, newest first.

        Args:
            artifact_id: Owning artifact
            limit: Maximum rows (defaults to the page size)
            before: Only versions numbered below this (keyset cursor)

        Returns:
            Versions in descending version order
        """
        await self._ensure_artifact(artifact_id)
        query = (
            select(ArtifactVersion)
            .where(ArtifactVersion.artifact_id == artifact_id)
            .order_by(ArtifactVersion.version.desc())
            .limit(limit or self.page_size)
        )
        if before is not None:
            query = query.where(ArtifactVersion.version < before)

        result = await self.db.execute(query)
        return [to_version_schema(r) for r in result.scalars().all()]

    async def list_versions(self, artifact_id: UUID) -> AsyncIterator[ArtifactVersionSchema]:
        """Lazily iterate all versions, newest first.

        Pages are fetched on demand. Iterating again starts over and sees any
        versions appended in the meantime.

        Raises:
            ArtifactNotFoundError: If the artifact does not exist
        """
        before = None
        while True:
            rows = await self.page(artifact_id, before=before)
            for row in rows:
                yield row
            if len(rows) < self.page_size:
                return
            before = rows[-1].version

    async def restore(
        self,
        artifact_id: UUID,
        version_id: UUID,
        change_summary: str | None = None,
    ) -> ArtifactVersionSchema:
        """Re-commit a historical version as the new current version.

        The source version is only read. Restoring the current version is
        allowed and produces a checkpoint copy.

        Args:
            artifact_id: Owning artifact
            version_id: Version to restore
            change_summary: Optional summary (defaults to "Restored from version N")

        Returns:
            The newly appended version

        Raises:
            VersionNotFoundError: If the version does not belong to the artifact
            CommitConflictError: If a concurrent write took the version number
        """
        source = await self._get_record(artifact_id, version_id)
        if not verify_text_hash(source.content, source.content_hash):
            logger.warning(
                "Version content does not match its hash",
                artifact_id=str(artifact_id),
                version=source.version,
            )
        artifact = await self._ensure_artifact(artifact_id)

        variants = source.variants or {
            source.selected_variant or "a": {"content": source.content, "approach": None}
        }
        selected = source.selected_variant
        if selected not in variants:
            selected = next(iter(sorted(variants)))

        artifact.set_variants(variants)
        artifact.selected_variant = selected
        artifact.title = source.title

        record = await self.append(
            artifact_id,
            content=source.content,
            title=source.title,
            change_type=ChangeType.RESTORED,
            variants=dict(variants),
            selected_variant=selected,
            change_summary=change_summary or f"Restored from version {source.version}",
        )
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise CommitConflictError(artifact_id, "concurrent restore") from e

        logger.info(
            "Version restored",
            artifact_id=str(artifact_id),
            restored_from=source.version,
            version=record.version,
        )
        return to_version_schema(record)
