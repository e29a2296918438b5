"""Database-backed comment store with realtime change publication."""

import re
import uuid
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import structlog
from fastapi import Depends
from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from artifact_core.annotations.backend import CommentBackend
from artifact_core.errors import (
    CommentNotFoundError,
    NotFoundError,
    SchemaDriftError,
    StoreUnavailableError,
)
from artifact_core.models.comment import Comment as CommentSchema
from artifact_core.models.comment import CommentCounts, CommentCreate, CommentUpdate
from artifact_core.models.realtime import ChangeEvent, ChangeOperation
from artifact_core.realtime.hub import RealtimeChannel, get_realtime_hub
from database.models import Comment, Conversation
from database.session import get_session_factory

logger = structlog.get_logger()

COMMENTS_TABLE = "comments"

# Driver messages for writes naming a column the table does not have
_MISSING_COLUMN = re.compile(
    r"no such column: (?:\w+\.)?(\w+)"
    r"|has no column named (\w+)"
    r"|column \"?(\w+)\"? (?:of relation \"?\w+\"? )?does not exist"
    r"|unknown column '?(\w+)'?",
    re.IGNORECASE,
)


def to_comment_schema(record: Comment) -> CommentSchema:
    """Convert a comment row to its API model."""
    metadata = record.comment_metadata or {}
    return CommentSchema(
        id=record.id,
        conversation_id=record.conversation_id,
        content=record.content,
        quoted_text=record.quoted_text,
        author_id=record.author_id,
        assigned_to=record.assigned_to,
        priority=record.priority,
        resolved=record.resolved,
        parent_comment_id=record.parent_comment_id,
        artifact_id=metadata.get("artifact_id"),
        artifact_variant=metadata.get("artifact_variant"),
        client_ref=record.client_ref,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _store_error(exc: SQLAlchemyError) -> StoreUnavailableError:
    """Classify a database failure."""
    fields = [
        next(group for group in match.groups() if group)
        for match in _MISSING_COLUMN.finditer(str(exc))
    ]
    if fields:
        return SchemaDriftError(
            f"Comment store rejected fields: {', '.join(fields)}", fields=fields
        )
    return StoreUnavailableError(f"Comment store unavailable: {exc}")


def _column_values(data: CommentCreate, fields: set[str] | None) -> dict[str, Any]:
    """Column values for an insert, optionally limited to the given fields."""
    values: dict[str, Any] = {
        "conversation_id": data.conversation_id,
        "content": data.content,
        "quoted_text": data.quoted_text,
        "author_id": data.author_id,
        "assigned_to": data.assigned_to,
        "priority": data.priority.value,
        "parent_comment_id": data.parent_comment_id,
        "client_ref": data.client_ref,
    }
    metadata: dict[str, str] = {}
    if data.artifact_id is not None:
        metadata["artifact_id"] = str(data.artifact_id)
    if data.artifact_variant is not None:
        metadata["artifact_variant"] = data.artifact_variant.value

    if fields is None:
        values["resolved"] = False
        values["comment_metadata"] = metadata or None
        return values

    reduced = {k: v for k, v in values.items() if k in fields}
    reduced["conversation_id"] = data.conversation_id
    kept_metadata = {k: v for k, v in metadata.items() if k in fields}
    if kept_metadata:
        reduced["comment_metadata"] = kept_metadata
    return reduced


class CommentRepository(CommentBackend):
    """Authoritative comment store on the API side.

    Every write publishes a change event on the owning conversation's
    realtime channel after it commits.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        channel: RealtimeChannel | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            session_factory: Factory for database sessions (one per call)
            channel: Realtime channel to publish changes on
        """
        self.session_factory = session_factory
        self.channel = channel

    async def _publish(
        self, operation: ChangeOperation, conversation_id: UUID, row: dict[str, Any]
    ) -> None:
        if self.channel is None:
            return
        delivered = await self.channel.publish(
            ChangeEvent(
                operation=operation,
                table=COMMENTS_TABLE,
                conversation_id=conversation_id,
                row=row,
            )
        )
        logger.debug(
            "Comment change published",
            conversation_id=str(conversation_id),
            operation=operation.value,
            subscribers=delivered,
        )

    async def _get_record(self, db: AsyncSession, comment_id: UUID) -> Comment:
        record = await db.get(Comment, comment_id)
        if record is None:
            raise CommentNotFoundError(comment_id)
        return record

    async def list_comments(
        self,
        conversation_id: UUID,
        artifact_id: UUID | None = None,
        include_resolved: bool = True,
    ) -> list[CommentSchema]:
        query = (
            select(Comment)
            .where(Comment.conversation_id == conversation_id)
            .order_by(Comment.created_at)
        )
        if not include_resolved:
            query = query.where(Comment.resolved.is_(False))

        async with self.session_factory() as db:
            try:
                result = await db.execute(query)
                comments = [to_comment_schema(r) for r in result.scalars().all()]
            except SQLAlchemyError as e:
                raise _store_error(e) from e

        # artifact_id lives in the metadata blob
        if artifact_id is not None:
            comments = [c for c in comments if c.artifact_id == artifact_id]
        return comments

    async def counts(
        self, conversation_id: UUID, artifact_id: UUID | None = None
    ) -> CommentCounts:
        """Open/resolved counts for a conversation or one of its artifacts."""
        comments = await self.list_comments(conversation_id, artifact_id=artifact_id)
        resolved = sum(1 for c in comments if c.resolved)
        return CommentCounts(open=len(comments) - resolved, resolved=resolved)

    async def create_comment(
        self, data: CommentCreate, fields: set[str] | None = None
    ) -> CommentSchema:
        values = _column_values(data, fields)

        async with self.session_factory() as db:
            if await db.get(Conversation, data.conversation_id) is None:
                raise NotFoundError(f"Conversation not found: {data.conversation_id}")

            try:
                if fields is None:
                    record = Comment(**values)
                    db.add(record)
                    await db.commit()
                    comment = to_comment_schema(record)
                else:
                    comment_id = uuid.uuid4()
                    created_at = datetime.now(timezone.utc)
                    metadata = values.pop("comment_metadata", None)
                    columns = {"id": comment_id, "created_at": created_at, **values}
                    if metadata:
                        columns["metadata"] = metadata
                    await db.execute(insert(Comment.__table__).values(**columns))
                    await db.commit()
                    metadata = metadata or {}
                    comment = CommentSchema(
                        id=comment_id, created_at=created_at, **values, **metadata
                    )
            except SQLAlchemyError as e:
                await db.rollback()
                error = _store_error(e)
                logger.warning(
                    "Comment insert failed",
                    conversation_id=str(data.conversation_id),
                    reduced=fields is not None,
                    error=str(error),
                )
                raise error from e

        logger.info(
            "Comment created",
            comment_id=str(comment.id),
            conversation_id=str(comment.conversation_id),
            client_ref=str(comment.client_ref) if comment.client_ref else None,
            reduced=fields is not None,
        )
        await self._publish(
            ChangeOperation.INSERT, comment.conversation_id, comment.model_dump(mode="json")
        )
        return comment

    async def update_comment(self, comment_id: UUID, changes: CommentUpdate) -> CommentSchema:
        async with self.session_factory() as db:
            record = await self._get_record(db, comment_id)
            for field, value in changes.model_dump(exclude_unset=True, mode="json").items():
                setattr(record, field, value)
            try:
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise _store_error(e) from e
            comment = to_comment_schema(record)

        logger.info(
            "Comment updated",
            comment_id=str(comment_id),
            changes=sorted(changes.model_fields_set),
        )
        await self._publish(
            ChangeOperation.UPDATE, comment.conversation_id, comment.model_dump(mode="json")
        )
        return comment

    async def delete_comment(self, comment_id: UUID) -> None:
        async with self.session_factory() as db:
            record = await self._get_record(db, comment_id)
            conversation_id = record.conversation_id
            await db.delete(record)
            try:
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise _store_error(e) from e

        logger.info("Comment deleted", comment_id=str(comment_id))
        await self._publish(
            ChangeOperation.DELETE, conversation_id, {"id": str(comment_id)}
        )


def get_comment_repository(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> CommentRepository:
    """Dependency providing the comment repository."""
    return CommentRepository(session_factory, channel=get_realtime_hub())
