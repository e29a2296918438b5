"""Integration tests for VersionHistoryLog on SQLite."""

from uuid import uuid4

import pytest

from artifact_core.errors import (
    ArtifactNotFoundError,
    CommitConflictError,
    VersionNotFoundError,
)
from artifact_core.models.artifact import ArtifactCreate, Variant
from artifact_core.models.version import ChangeType, StreamCommit
from artifact_core.utils.hashing import compute_text_hash, verify_text_hash
from database.models import ArtifactVersion
from services.artifact_store import ArtifactStore
from services.version_log import VersionHistoryLog


@pytest.fixture
def store(db_session) -> ArtifactStore:
    return ArtifactStore(db_session, page_size=2)


@pytest.fixture
async def artifact(store, conversation):
    return await store.create(
        ArtifactCreate(conversation_id=conversation.id, title="Launch email")
    )


async def commit_versions(store: ArtifactStore, artifact_id, count: int) -> None:
    """Append ``count`` stream commits."""
    for number in range(1, count + 1):
        await store.commit_streamed_content(
            artifact_id,
            StreamCommit(variants={Variant.A: f"A{number}", Variant.B: f"B{number}"}),
        )


class TestAppend:
    """Tests for version numbering."""

    @pytest.mark.asyncio
    async def test_numbers_strictly_increase(self, store, artifact):
        """Test sequential commits get 1, 2, 3 with no gaps or duplicates."""
        await commit_versions(store, artifact.id, 3)

        versions = [v async for v in store.versions.list_versions(artifact.id)]

        assert [v.version for v in versions] == [3, 2, 1]
        assert [v.change_type for v in versions] == [
            ChangeType.REVISED,
            ChangeType.REVISED,
            ChangeType.ORIGINAL,
        ]

    @pytest.mark.asyncio
    async def test_content_hash(self, store, artifact):
        """Test each version records the hash of its content."""
        await commit_versions(store, artifact.id, 1)

        current = await store.versions.current(artifact.id)
        assert current.content_hash == compute_text_hash("A1")
        assert verify_text_hash(current.content, current.content_hash)
        assert not verify_text_hash("tampered", current.content_hash)

    @pytest.mark.asyncio
    async def test_collision_is_a_conflict(self, store, artifact, db_session):
        """Test a taken version number raises and writes nothing."""
        await commit_versions(store, artifact.id, 1)
        db_session.add(
            ArtifactVersion(
                artifact_id=artifact.id,
                version=2,
                content="racer",
                title="Launch email",
                change_type="edited",
                variants={},
                content_hash=compute_text_hash("racer"),
            )
        )
        await db_session.commit()

        with pytest.raises(CommitConflictError):
            await store.commit_streamed_content(
                artifact.id, StreamCommit(variants={Variant.A: "mine"})
            )

        stored = await store.get(artifact.id)
        assert stored.version_count == 1
        assert stored.variants[Variant.A].content == "A1"

    @pytest.mark.asyncio
    async def test_append_to_missing_artifact(self, db_session):
        """Test appending to an unknown artifact."""
        log = VersionHistoryLog(db_session)
        with pytest.raises(ArtifactNotFoundError):
            await log.append(uuid4(), content="x", title="t")


class TestReads:
    """Tests for get/current/page/list."""

    @pytest.mark.asyncio
    async def test_page_with_cursor(self, store, artifact):
        """Test keyset pagination by version number."""
        await commit_versions(store, artifact.id, 5)

        first = await store.versions.page(artifact.id, limit=2)
        second = await store.versions.page(artifact.id, limit=2, before=first[-1].version)

        assert [v.version for v in first] == [5, 4]
        assert [v.version for v in second] == [3, 2]

    @pytest.mark.asyncio
    async def test_lazy_listing_spans_pages(self, store, artifact):
        """Test the lazy listing walks every page."""
        await commit_versions(store, artifact.id, 5)

        versions = [v.version async for v in store.versions.list_versions(artifact.id)]

        assert versions == [5, 4, 3, 2, 1]

    @pytest.mark.asyncio
    async def test_get_checks_artifact(self, store, artifact, conversation):
        """Test a version cannot be read through another artifact."""
        await commit_versions(store, artifact.id, 1)
        version = await store.versions.current(artifact.id)
        other = await store.create(
            ArtifactCreate(conversation_id=conversation.id, title="Other")
        )

        assert (await store.versions.get(artifact.id, version.id)).id == version.id
        with pytest.raises(VersionNotFoundError):
            await store.versions.get(other.id, version.id)


class TestRestore:
    """Tests for restore."""

    @pytest.mark.asyncio
    async def test_restore_first_of_three(self, store, artifact):
        """Test restoring version 1 of 3 creates version 4 and leaves 1-3 alone."""
        await commit_versions(store, artifact.id, 3)
        before = [v async for v in store.versions.list_versions(artifact.id)]
        original = before[-1]

        restored = await store.restore_version(artifact.id, original.id)

        assert restored.version == 4
        assert restored.change_type == ChangeType.RESTORED
        assert restored.content == original.content
        assert restored.variants == original.variants
        assert restored.change_summary == "Restored from version 1"

        after = [v async for v in store.versions.list_versions(artifact.id)]
        assert after[1:] == before

        stored = await store.get(artifact.id)
        assert stored.version_count == 4
        assert stored.variants[Variant.A].content == "A1"
        assert stored.variants[Variant.B].content == "B1"

    @pytest.mark.asyncio
    async def test_restore_current_is_a_checkpoint(self, store, artifact):
        """Test restoring the current version still appends one."""
        await commit_versions(store, artifact.id, 2)
        current = await store.versions.current(artifact.id)

        restored = await store.restore_version(artifact.id, current.id, "Checkpoint")

        assert restored.version == 3
        assert restored.change_summary == "Checkpoint"
        assert restored.content == current.content

    @pytest.mark.asyncio
    async def test_restore_unknown_version(self, store, artifact):
        """Test restoring a version of another artifact fails."""
        with pytest.raises(VersionNotFoundError):
            await store.restore_version(artifact.id, uuid4())
