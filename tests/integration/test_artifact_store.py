"""Integration tests for ArtifactStore on SQLite."""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from artifact_core.errors import ArtifactNotFoundError, InvalidTransitionError, NotFoundError
from artifact_core.models.artifact import (
    ApprovalRequest,
    ApprovalStatus,
    ArtifactCreate,
    ArtifactUpdate,
    ArtifactStatus,
    Variant,
    VariantEdit,
)
from artifact_core.models.version import ChangeType, StreamCommit
from database.models import ArtifactVersion
from services.artifact_store import ArtifactStore


@pytest.fixture
def store(db_session, hub) -> ArtifactStore:
    return ArtifactStore(db_session, channel=hub)


@pytest.fixture
async def artifact(store, conversation):
    return await store.create(
        ArtifactCreate(conversation_id=conversation.id, title="Launch email")
    )


class TestCommitStreamedContent:
    """Tests for committing finished streams."""

    @pytest.mark.asyncio
    async def test_first_commit_is_original(self, store, artifact):
        """Test committing {a, b} to a fresh artifact appends version 1."""
        version = await store.commit_streamed_content(
            artifact.id, StreamCommit(variants={Variant.A: "X", Variant.B: "Y"})
        )

        assert version.version == 1
        assert version.change_type == ChangeType.ORIGINAL
        assert version.content == "X"
        assert set(version.variants) == {Variant.A, Variant.B}

        stored = await store.get(artifact.id)
        assert stored.version_count == 1
        assert stored.variants[Variant.A].content == "X"
        assert stored.variants[Variant.B].content == "Y"
        assert Variant.C not in stored.variants

    @pytest.mark.asyncio
    async def test_first_commit_ignores_requested_change_type(self, store, artifact):
        """Test the first version is always original."""
        version = await store.commit_streamed_content(
            artifact.id,
            StreamCommit(variants={Variant.A: "X"}, change_type=ChangeType.EDITED),
        )
        assert version.change_type == ChangeType.ORIGINAL

    @pytest.mark.asyncio
    async def test_later_commit_replaces_variant_map(self, store, artifact):
        """Test a regeneration is revised and clears variants it omits."""
        await store.commit_streamed_content(
            artifact.id, StreamCommit(variants={Variant.A: "X", Variant.B: "Y"})
        )
        version = await store.commit_streamed_content(
            artifact.id, StreamCommit(variants={Variant.A: "X2"}, title="Launch email v2")
        )

        assert version.version == 2
        assert version.change_type == ChangeType.REVISED
        stored = await store.get(artifact.id)
        assert stored.title == "Launch email v2"
        assert list(stored.variants) == [Variant.A]

    @pytest.mark.asyncio
    async def test_approach_extracted_when_not_supplied(self, store, artifact):
        """Test approaches fall back to the content's approach line."""
        await store.commit_streamed_content(
            artifact.id,
            StreamCommit(
                variants={
                    Variant.A: "**Approach:** Urgency.\n\nBuy now",
                    Variant.B: "Body",
                },
                approaches={Variant.B: "Given"},
            ),
        )

        stored = await store.get(artifact.id)
        assert stored.variants[Variant.A].approach == "Urgency."
        assert stored.variants[Variant.B].approach == "Given"

    @pytest.mark.asyncio
    async def test_body_first_line_is_not_an_approach(self, store, artifact):
        """Test only explicit approach lines are stored as approaches."""
        await store.commit_streamed_content(
            artifact.id,
            StreamCommit(
                variants={Variant.A: "Our spring collection is here at last\n\nShop now"},
            ),
        )

        stored = await store.get(artifact.id)
        assert stored.variants[Variant.A].approach is None

    @pytest.mark.asyncio
    async def test_commit_publishes_change(self, store, artifact, hub):
        """Test viewers of the conversation are notified."""
        subscription = await hub.subscribe(artifact.conversation_id)

        await store.commit_streamed_content(artifact.id, StreamCommit(variants={Variant.A: "X"}))

        event = await subscription.get()
        assert event.table == "artifacts"
        assert event.row["id"] == str(artifact.id)
        assert event.row["version_count"] == 1
        await subscription.close()

    @pytest.mark.asyncio
    async def test_missing_artifact(self, store):
        """Test committing to an unknown artifact."""
        with pytest.raises(ArtifactNotFoundError):
            await store.commit_streamed_content(uuid4(), StreamCommit(variants={Variant.A: "X"}))


class TestArtifactRecord:
    """Tests for artifact CRUD and metadata."""

    @pytest.mark.asyncio
    async def test_create_without_conversation(self, store):
        """Test artifacts need an owning conversation."""
        with pytest.raises(NotFoundError):
            await store.create(ArtifactCreate(conversation_id=uuid4(), title="Orphan"))

    @pytest.mark.asyncio
    async def test_created_without_versions(self, artifact, store):
        """Test a new artifact has no history yet."""
        assert artifact.version_count == 0
        assert artifact.variants == {}
        assert await store.versions.current(artifact.id) is None

    @pytest.mark.asyncio
    async def test_update_does_not_version(self, store, artifact):
        """Test metadata updates leave the history alone."""
        updated = await store.update(
            artifact.id, ArtifactUpdate(title="Renamed", status=ArtifactStatus.FINAL)
        )

        assert updated.title == "Renamed"
        assert updated.status == ArtifactStatus.FINAL
        assert updated.version_count == 0

    @pytest.mark.asyncio
    async def test_list_for_conversation(self, store, artifact, conversation):
        """Test listing artifacts of a conversation."""
        summaries = await store.list_for_conversation(conversation.id)
        assert [s.id for s in summaries] == [artifact.id]

    @pytest.mark.asyncio
    async def test_delete_removes_history(self, store, artifact, db_session):
        """Test deleting an artifact deletes its versions."""
        await store.commit_streamed_content(artifact.id, StreamCommit(variants={Variant.A: "X"}))

        await store.delete(artifact.id)

        with pytest.raises(ArtifactNotFoundError):
            await store.get(artifact.id)
        remaining = await db_session.scalar(
            select(func.count()).select_from(ArtifactVersion)
        )
        assert remaining == 0


class TestVariants:
    """Tests for variant reads, selection and edits."""

    @pytest.mark.asyncio
    async def test_variant_fallback_and_cleanup(self, store, artifact):
        """Test a missing variant falls back and display cleanup applies."""
        await store.commit_streamed_content(
            artifact.id, StreamCommit(variants={Variant.A: "```html\n<p>Hi</p>\n```"})
        )

        view = await store.get_variant_content(artifact.id, Variant.C)
        assert view.variant == Variant.A
        assert view.is_fallback
        assert view.content == "<p>Hi</p>"

        raw = await store.get_variant_content(artifact.id, Variant.A, clean=False)
        assert raw.content == "```html\n<p>Hi</p>\n```"
        assert not raw.is_fallback

    @pytest.mark.asyncio
    async def test_variant_of_empty_artifact(self, store, artifact):
        """Test reading a variant before anything was committed."""
        view = await store.get_variant_content(artifact.id, Variant.A)
        assert view.variant is None
        assert view.content == ""

    @pytest.mark.asyncio
    async def test_select_variant_is_metadata_only(self, store, artifact):
        """Test changing the selection does not append a version."""
        await store.commit_streamed_content(
            artifact.id, StreamCommit(variants={Variant.A: "X", Variant.B: "Y"})
        )

        selected = await store.set_selected_variant(artifact.id, Variant.B)

        assert selected.selected_variant == Variant.B
        assert selected.version_count == 1

    @pytest.mark.asyncio
    async def test_edit_variant(self, store, artifact):
        """Test a user edit replaces one variant and appends an edited version."""
        await store.commit_streamed_content(
            artifact.id,
            StreamCommit(
                variants={Variant.A: "X", Variant.B: "Y"},
                approaches={Variant.B: "Curiosity"},
            ),
        )

        version = await store.edit_variant(
            artifact.id, Variant.B, VariantEdit(content="Y edited", change_summary="Tone")
        )

        assert version.version == 2
        assert version.change_type == ChangeType.EDITED
        assert version.change_summary == "Tone"
        stored = await store.get(artifact.id)
        assert stored.variants[Variant.A].content == "X"
        assert stored.variants[Variant.B].content == "Y edited"
        assert stored.variants[Variant.B].approach == "Curiosity"


class TestWorkflow:
    """Tests for approval, duplication and sharing."""

    @pytest.mark.asyncio
    async def test_approval_flow(self, store, artifact):
        """Test draft -> pending_review -> approved -> draft."""
        pending = await store.transition_approval(
            artifact.id, ApprovalRequest(status=ApprovalStatus.PENDING_REVIEW)
        )
        assert pending.approval_status == ApprovalStatus.PENDING_REVIEW

        approved = await store.transition_approval(
            artifact.id, ApprovalRequest(status=ApprovalStatus.APPROVED, actor="dana")
        )
        assert approved.approved_by == "dana"
        assert approved.approved_at is not None

        reopened = await store.transition_approval(
            artifact.id, ApprovalRequest(status=ApprovalStatus.DRAFT)
        )
        assert reopened.approval_status == ApprovalStatus.DRAFT
        assert reopened.approved_by is None
        assert reopened.version_count == 0

    @pytest.mark.asyncio
    async def test_rejection_keeps_notes(self, store, artifact):
        """Test a rejection records the reviewer notes."""
        await store.transition_approval(
            artifact.id, ApprovalRequest(status=ApprovalStatus.PENDING_REVIEW)
        )
        rejected = await store.transition_approval(
            artifact.id,
            ApprovalRequest(status=ApprovalStatus.REJECTED, notes="Too long"),
        )
        assert rejected.rejection_notes == "Too long"

    @pytest.mark.asyncio
    async def test_invalid_transition(self, store, artifact):
        """Test drafts cannot be approved directly."""
        with pytest.raises(InvalidTransitionError):
            await store.transition_approval(
                artifact.id, ApprovalRequest(status=ApprovalStatus.APPROVED)
            )

    @pytest.mark.asyncio
    async def test_duplicate(self, store, artifact):
        """Test a duplicate gets the same contents and its own version 1."""
        await store.commit_streamed_content(
            artifact.id, StreamCommit(variants={Variant.A: "X", Variant.B: "Y"})
        )
        await store.edit_variant(artifact.id, Variant.A, VariantEdit(content="X2"))

        copy = await store.duplicate(artifact.id, created_by="erin")

        assert copy.id != artifact.id
        assert copy.title == "Launch email (Copy)"
        assert copy.created_by == "erin"
        assert copy.version_count == 1
        assert copy.variants[Variant.A].content == "X2"
        history = await store.versions.page(copy.id)
        assert [(v.version, v.change_type) for v in history] == [(1, ChangeType.ORIGINAL)]

    @pytest.mark.asyncio
    async def test_share_and_revoke(self, store, artifact):
        """Test share tokens are stable until revoked."""
        token = await store.share(artifact.id)

        assert await store.share(artifact.id) == token
        shared = await store.get_shared(token)
        assert shared.id == artifact.id

        await store.revoke_share(artifact.id)
        with pytest.raises(NotFoundError):
            await store.get_shared(token)
