"""Unit tests for CollabAPIClient."""

import json
from datetime import datetime, timezone
from uuid import uuid4

import httpx
import pytest
from tenacity import wait_none

from artifact_core.annotations.service import CollaborativeAnnotationService
from artifact_core.client import CollabAPIClient
from artifact_core.config.schemas import APIClientConfig
from artifact_core.errors import (
    ArtifactNotFoundError,
    CommentNotFoundError,
    CommitConflictError,
    NotFoundError,
    RequestRejectedError,
    SchemaDriftError,
    StoreUnavailableError,
)
from artifact_core.models.artifact import Variant
from artifact_core.models.comment import CommentCreate, CommentUpdate
from artifact_core.models.version import StreamCommit
from artifact_core.streaming.session import StreamSession, StreamStatus

NOW = datetime.now(timezone.utc).isoformat()


def version_body(artifact_id, number=1, change_type="original"):
    """JSON body of a version response."""
    return {
        "id": str(uuid4()),
        "artifact_id": str(artifact_id),
        "version": number,
        "content": "X",
        "title": "Launch email",
        "change_type": change_type,
        "variants": {"a": {"content": "X", "approach": None}},
        "selected_variant": "a",
        "content_hash": "0" * 64,
        "created_at": NOW,
    }


def make_client(handler, **config) -> CollabAPIClient:
    """Client wired to a mock transport."""
    return CollabAPIClient(
        config=APIClientConfig(base_url="http://collab.test", **config),
        transport=httpx.MockTransport(handler),
        retry_wait=wait_none(),
    )


class TestCommentCalls:
    """Tests for the comment backend contract over HTTP."""

    @pytest.mark.asyncio
    async def test_create_comment(self):
        """Test the full payload is posted to the conversation."""
        conversation_id = uuid4()
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            body = json.loads(request.content)
            seen["body"] = body
            return httpx.Response(201, json={**body, "id": str(uuid4()), "created_at": NOW})

        async with make_client(handler) as client:
            comment = await client.create_comment(
                CommentCreate(
                    conversation_id=conversation_id,
                    content="Nice",
                    author_id="alice",
                    assigned_to="bob",
                )
            )

        assert seen["path"] == f"/conversations/{conversation_id}/comments"
        assert seen["params"] == {}
        assert seen["body"]["assigned_to"] == "bob"
        assert comment.assigned_to == "bob"

    @pytest.mark.asyncio
    async def test_create_comment_reduced(self):
        """Test the reduced write only sends the kept fields."""
        conversation_id = uuid4()
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            body = json.loads(request.content)
            seen["body"] = body
            return httpx.Response(201, json={**body, "id": str(uuid4()), "created_at": NOW})

        async with make_client(handler) as client:
            await client.create_comment(
                CommentCreate(
                    conversation_id=conversation_id,
                    content="Nice",
                    author_id="alice",
                    assigned_to="bob",
                ),
                fields={"content", "author_id"},
            )

        assert seen["params"] == {"reduced": "true"}
        assert set(seen["body"]) == {"conversation_id", "content", "author_id"}

    @pytest.mark.asyncio
    async def test_schema_drift_response(self):
        """Test a schema_drift 422 becomes SchemaDriftError with fields."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                422,
                json={
                    "detail": {
                        "code": "schema_drift",
                        "message": "rejected",
                        "fields": ["metadata"],
                    }
                },
            )

        async with make_client(handler) as client:
            with pytest.raises(SchemaDriftError) as exc_info:
                await client.create_comment(
                    CommentCreate(conversation_id=uuid4(), content="x", author_id="a")
                )

        assert exc_info.value.fields == ["metadata"]

    @pytest.mark.asyncio
    async def test_update_missing_comment(self):
        """Test a 404 on update maps to CommentNotFoundError."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"resolved": True}
            return httpx.Response(404, json={"detail": "Comment not found"})

        async with make_client(handler) as client:
            with pytest.raises(CommentNotFoundError):
                await client.update_comment(uuid4(), CommentUpdate(resolved=True))

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Test 5xx responses map to StoreUnavailableError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={"detail": {"code": "store_unavailable"}})

        async with make_client(handler) as client:
            with pytest.raises(StoreUnavailableError):
                await client.list_comments(uuid4())

    @pytest.mark.asyncio
    async def test_unauthorized_is_rejected(self):
        """Test a 401 maps to RequestRejectedError with its status."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"detail": "Not authenticated"})

        async with make_client(handler) as client:
            with pytest.raises(RequestRejectedError) as exc_info:
                await client.list_comments(uuid4())

        assert exc_info.value.status_code == 401
        assert "Not authenticated" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_plain_validation_error_is_rejected(self):
        """Test a 422 without the drift code is not treated as drift."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"detail": [{"msg": "field required"}]})

        data = CommentCreate(conversation_id=uuid4(), content="Hi", author_id="alice")
        async with make_client(handler) as client:
            with pytest.raises(RequestRejectedError) as exc_info:
                await client.create_comment(data)

        assert exc_info.value.status_code == 422
        assert not isinstance(exc_info.value, SchemaDriftError)

    @pytest.mark.asyncio
    async def test_missing_conversation_on_create(self):
        """Test a 404 on create maps to NotFoundError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"detail": "Conversation not found"})

        data = CommentCreate(conversation_id=uuid4(), content="Hi", author_id="alice")
        async with make_client(handler) as client:
            with pytest.raises(NotFoundError):
                await client.create_comment(data)

    @pytest.mark.asyncio
    async def test_unauthorized_add_rolls_back_annotation(self):
        """Test a 401 on create is rolled back by the annotation service."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"detail": "Not authenticated"})

        async with make_client(handler) as client:
            service = CollaborativeAnnotationService(client, uuid4())
            assert await service.add("Hello", "alice") is None

        assert service.comments == []
        assert service.notices[-1].message == "Comment could not be saved"


class TestArtifactCalls:
    """Tests for artifact commit/restore calls."""

    @pytest.mark.asyncio
    async def test_commit_conflict(self):
        """Test a 409 maps to CommitConflictError."""
        artifact_id = uuid4()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                409, json={"detail": {"code": "commit_conflict", "message": "taken"}}
            )

        async with make_client(handler) as client:
            with pytest.raises(CommitConflictError) as exc_info:
                await client.commit_stream(
                    artifact_id, StreamCommit(variants={Variant.A: "X"})
                )

        assert exc_info.value.artifact_id == artifact_id

    @pytest.mark.asyncio
    async def test_missing_artifact(self):
        """Test a 404 on an artifact maps to ArtifactNotFoundError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"detail": "Artifact not found"})

        async with make_client(handler) as client:
            with pytest.raises(ArtifactNotFoundError):
                await client.list_versions(uuid4())

    @pytest.mark.asyncio
    async def test_network_errors_are_retried(self):
        """Test transport failures are retried, then reported as unavailable."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler, retry_attempts=3) as client:
            with pytest.raises(StoreUnavailableError):
                await client.get_artifact(uuid4())

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_recovers_after_network_blip(self):
        """Test a request succeeds when a retry gets through."""
        artifact_id = uuid4()
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json=[version_body(artifact_id)])

        async with make_client(handler) as client:
            versions = await client.list_versions(artifact_id, limit=10, before=5)

        assert len(calls) == 2
        assert dict(calls[-1].url.params) == {"limit": "10", "before": "5"}
        assert versions[0].version == 1

    @pytest.mark.asyncio
    async def test_committer_for_stream_session(self):
        """Test the client can commit a finished stream session."""
        artifact_id = uuid4()
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json=version_body(artifact_id))

        async def source():
            yield "<version_a>**Approach:** Short.\n\nX"
            yield "</version_a>"

        async with make_client(handler) as client:
            session = StreamSession(committer=client.committer_for(artifact_id))
            outcome = await session.run(source())

        assert outcome.status == StreamStatus.COMMITTED
        assert outcome.committed.version == 1
        assert seen["path"] == f"/artifacts/{artifact_id}/commit"
        assert seen["body"]["variants"] == {"a": "**Approach:** Short.\n\nX"}
        assert seen["body"]["approaches"] == {"a": "Short."}

    @pytest.mark.asyncio
    async def test_api_key_header(self):
        """Test the bearer token is sent when configured."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[])

        async with make_client(handler, api_key="secret") as client:
            await client.list_comments(uuid4())

        assert seen["auth"] == "Bearer secret"
