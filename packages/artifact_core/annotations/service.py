"""Collaborative annotation service.

Comment mutations are applied to local state first and confirmed by the
backend afterwards. Local records are keyed by correlation key (the
client-generated ``client_ref`` for records created here, the server id
otherwise), never by position, so a confirmation or a refetch replaces the
optimistic record in place.

Merge rules when the authoritative list arrives:
- creations still in flight are kept until the backend confirms them;
- records with an update in flight keep their local fields;
- records being deleted are not resurrected;
- everything else is taken from the backend (last writer wins per row).
"""

import asyncio
import contextlib
from collections import defaultdict
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID, uuid4

import structlog
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from artifact_core.annotations.backend import CommentBackend
from artifact_core.config.schemas import AnnotationsConfig
from artifact_core.errors import (
    ArtifactCoreError,
    ChannelDisconnectedError,
    NotFoundError,
    SchemaDriftError,
    StoreUnavailableError,
)
from artifact_core.models.artifact import Variant
from artifact_core.models.comment import (
    Comment,
    CommentCounts,
    CommentCreate,
    CommentPriority,
    CommentUpdate,
)
from artifact_core.models.realtime import ChangeEvent
from artifact_core.realtime.hub import RealtimeChannel, Subscription

logger = structlog.get_logger()

COMMENTS_TABLE = "comments"


@dataclass(frozen=True)
class Notice:
    """Non-blocking user-facing notification."""

    level: str
    message: str
    comment_key: UUID | None = None


class CollaborativeAnnotationService:
    """Comment state for one conversation (optionally one artifact) viewer."""

    def __init__(
        self,
        backend: CommentBackend,
        conversation_id: UUID,
        channel: RealtimeChannel | None = None,
        artifact_id: UUID | None = None,
        config: AnnotationsConfig | None = None,
        on_change: Callable[[list[Comment]], None] | None = None,
        on_notice: Callable[[Notice], None] | None = None,
        reconnect_wait: wait_base | None = None,
    ):
        """Initialize the service.

        Args:
            backend: Authoritative comment store
            conversation_id: Conversation whose comments are shown
            channel: Realtime channel for remote change notifications
            artifact_id: Restrict the comment set to one artifact
            config: Schema drift fallback and reconnect settings
            on_change: Called with the comment list after every local change
            on_notice: Called for every user-facing notice
            reconnect_wait: Override for the wait between reconnect attempts
        """
        self.backend = backend
        self.conversation_id = conversation_id
        self.channel = channel
        self.artifact_id = artifact_id
        self.config = config or AnnotationsConfig()
        self._on_change = on_change
        self._on_notice = on_notice
        self._reconnect_wait = reconnect_wait or wait_exponential(
            multiplier=1, min=1, max=self.config.reconnect_max_wait_seconds
        )

        self._comments: dict[UUID, Comment] = {}
        self._pending: set[UUID] = set()
        self._dirty: dict[UUID, int] = defaultdict(int)
        self._deleting: set[UUID] = set()
        self._subscription: Subscription | None = None
        self._listener: asyncio.Task | None = None
        self.notices: list[Notice] = []

    # ------------------------------------------------------------------
    # Local state
    # ------------------------------------------------------------------

    @property
    def comments(self) -> list[Comment]:
        """Current comments, oldest first."""
        return sorted(self._comments.values(), key=lambda c: c.created_at)

    def get(self, key: UUID) -> Comment | None:
        """Look up a comment by correlation key."""
        return self._comments.get(key)

    def is_pending(self, key: UUID) -> bool:
        """True while a locally created comment awaits confirmation."""
        return key in self._pending

    def replies(self, parent_id: UUID) -> list[Comment]:
        """Direct replies to a comment."""
        return [c for c in self.comments if c.parent_comment_id == parent_id]

    def counts(self) -> CommentCounts:
        """Open/resolved counts over the local comment set."""
        resolved = sum(1 for c in self._comments.values() if c.resolved)
        return CommentCounts(open=len(self._comments) - resolved, resolved=resolved)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.comments)

    def _notify(self, level: str, message: str, key: UUID | None = None) -> None:
        notice = Notice(level=level, message=message, comment_key=key)
        self.notices.append(notice)
        if self._on_notice is not None:
            self._on_notice(notice)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def merge(self, rows: list[Comment]) -> None:
        """Merge the authoritative comment list into local state."""
        merged: dict[UUID, Comment] = {}
        for row in rows:
            key = row.correlation_key
            if key in self._deleting:
                continue
            if self._dirty.get(key) and key in self._comments:
                merged[key] = self._comments[key]
            else:
                merged[key] = row

        for key in self._pending:
            if key not in merged and key in self._comments:
                merged[key] = self._comments[key]

        self._comments = merged
        self._changed()

    async def refresh(self) -> bool:
        """Refetch the full comment set and merge it.

        Returns:
            True if the refetch succeeded
        """
        try:
            rows = await self.backend.list_comments(
                self.conversation_id, artifact_id=self.artifact_id
            )
        except (ArtifactCoreError, ValidationError) as e:
            logger.warning(
                "Comment refetch failed",
                conversation_id=str(self.conversation_id),
                error=str(e),
            )
            self._notify("error", "Could not load comments")
            return False

        self.merge(rows)
        logger.debug(
            "Comments refreshed",
            conversation_id=str(self.conversation_id),
            count=len(self._comments),
        )
        return True

    # ------------------------------------------------------------------
    # Optimistic mutations
    # ------------------------------------------------------------------

    async def add(
        self,
        content: str,
        author_id: str,
        quoted_text: str | None = None,
        assigned_to: str | None = None,
        priority: CommentPriority = CommentPriority.NORMAL,
        parent_comment_id: UUID | None = None,
        artifact_variant: Variant | None = None,
    ) -> Comment | None:
        """Add a comment, showing it immediately.

        Args:
            content: Comment body
            author_id: Author reference
            quoted_text: Source text selected when commenting; kept as is
            assigned_to: Optional assignee
            priority: Comment priority
            parent_comment_id: Comment being replied to
            artifact_variant: Variant that was displayed when commenting

        Returns:
            The confirmed comment, or None if the write failed
        """
        client_ref = uuid4()
        data = CommentCreate(
            conversation_id=self.conversation_id,
            content=content,
            author_id=author_id,
            quoted_text=quoted_text,
            assigned_to=assigned_to,
            priority=priority,
            parent_comment_id=parent_comment_id,
            artifact_id=self.artifact_id,
            artifact_variant=artifact_variant,
            client_ref=client_ref,
        )
        placeholder = Comment(
            id=client_ref,
            created_at=datetime.now(timezone.utc),
            **data.model_dump(),
        )
        self._comments[client_ref] = placeholder
        self._pending.add(client_ref)
        self._changed()

        try:
            stored = await self._create(data)
        except ArtifactCoreError as e:
            logger.error(
                "Comment create failed",
                client_ref=str(client_ref),
                error=str(e),
            )
            self._comments.pop(client_ref, None)
            self._notify("error", "Comment could not be saved", client_ref)
            self._changed()
            return None
        finally:
            self._pending.discard(client_ref)

        self._comments.pop(client_ref, None)
        self._comments[stored.correlation_key] = stored
        self._changed()
        logger.info(
            "Comment created",
            comment_id=str(stored.id),
            client_ref=str(client_ref),
        )
        return stored

    async def _create(self, data: CommentCreate) -> Comment:
        try:
            return await self.backend.create_comment(data)
        except SchemaDriftError as e:
            if not self.config.fallback_on_schema_drift:
                raise
            logger.warning(
                "Comment schema drift; retrying with reduced fields",
                client_ref=str(data.client_ref),
                fields=e.fields,
            )

        stored = await self.backend.create_comment(
            data, fields=set(self.config.reduced_fields)
        )
        self._notify(
            "warning",
            "Comment saved without some details",
            data.client_ref,
        )
        return stored

    async def _update(self, key: UUID, changes: CommentUpdate) -> Comment | None:
        current = self._comments.get(key)
        if current is None:
            self._notify("error", "Comment not found", key)
            return None
        if key in self._pending:
            self._notify("warning", "Comment is still being saved", key)
            return None

        optimistic = current.model_copy(
            update={
                **changes.model_dump(exclude_unset=True),
                "updated_at": datetime.now(timezone.utc),
            }
        )
        self._comments[key] = optimistic
        self._dirty[key] += 1
        self._changed()

        try:
            stored = await self.backend.update_comment(current.id, changes)
        except NotFoundError:
            logger.warning("Comment deleted remotely", comment_id=str(current.id))
            self._comments.pop(key, None)
            self._notify("warning", "Comment was deleted by someone else", key)
            self._changed()
            return None
        except ArtifactCoreError as e:
            logger.error("Comment update failed", comment_id=str(current.id), error=str(e))
            if self._comments.get(key) is optimistic:
                self._comments[key] = current
            self._notify("error", "Comment change could not be saved", key)
            self._changed()
            return None
        finally:
            self._dirty[key] -= 1
            if not self._dirty[key]:
                del self._dirty[key]

        if self._comments.get(key) is optimistic:
            self._comments[key] = stored
            self._changed()
        return stored

    async def toggle_resolved(self, key: UUID) -> Comment | None:
        """Flip the resolved flag of a comment."""
        current = self._comments.get(key)
        resolved = not current.resolved if current is not None else True
        return await self._update(key, CommentUpdate(resolved=resolved))

    async def assign(self, key: UUID, assignee: str | None) -> Comment | None:
        """Assign a comment, or clear the assignee with None."""
        return await self._update(key, CommentUpdate(assigned_to=assignee))

    async def set_priority(self, key: UUID, priority: CommentPriority) -> Comment | None:
        """Change the priority of a comment."""
        return await self._update(key, CommentUpdate(priority=priority))

    async def delete(self, key: UUID) -> bool:
        """Delete a comment, removing it immediately.

        Returns:
            True if the comment is gone from the backend
        """
        current = self._comments.get(key)
        if current is None:
            return False
        if key in self._pending:
            self._notify("warning", "Comment is still being saved", key)
            return False

        self._comments.pop(key)
        self._deleting.add(key)
        self._changed()

        try:
            await self.backend.delete_comment(current.id)
        except NotFoundError:
            pass
        except ArtifactCoreError as e:
            logger.error("Comment delete failed", comment_id=str(current.id), error=str(e))
            self._comments[key] = current
            self._notify("error", "Comment could not be deleted", key)
            self._changed()
            return False
        finally:
            self._deleting.discard(key)

        logger.info("Comment deleted", comment_id=str(current.id))
        return True

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------

    async def _handle_event(self, event: ChangeEvent) -> None:
        if event.table != COMMENTS_TABLE:
            return
        logger.debug(
            "Remote comment change",
            conversation_id=str(self.conversation_id),
            operation=event.operation.value,
        )
        await self.refresh()

    async def _reconnect(self) -> Subscription | None:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(
                    (ChannelDisconnectedError, StoreUnavailableError, OSError)
                ),
                stop=stop_after_attempt(self.config.reconnect_attempts),
                wait=self._reconnect_wait,
            ):
                with attempt:
                    return await self.channel.subscribe(self.conversation_id)
        except RetryError:
            logger.error(
                "Realtime reconnect gave up",
                conversation_id=str(self.conversation_id),
                attempts=self.config.reconnect_attempts,
            )
            self._notify("error", "Live updates are unavailable")
        return None

    async def _listen(self) -> None:
        while self._subscription is not None:
            try:
                event = await self._subscription.get()
            except ChannelDisconnectedError:
                logger.warning(
                    "Realtime channel disconnected",
                    conversation_id=str(self.conversation_id),
                )
                await self._subscription.close()
                self._subscription = await self._reconnect()
                if self._subscription is not None:
                    await self.refresh()
                continue

            try:
                await self._handle_event(event)
            except (ArtifactCoreError, ValidationError) as e:
                logger.error(
                    "Remote comment change could not be applied",
                    conversation_id=str(self.conversation_id),
                    operation=event.operation.value,
                    error=str(e),
                )
                self._notify("error", "Could not load comments")

    @contextlib.asynccontextmanager
    async def session(self) -> AsyncIterator["CollaborativeAnnotationService"]:
        """Scope for one viewing session.

        Subscribes to the conversation channel, loads the comment set and
        keeps it in sync until the block exits; the subscription is released
        on every exit path.
        """
        if self.channel is not None:
            self._subscription = await self.channel.subscribe(self.conversation_id)
            self._listener = asyncio.create_task(self._listen())
        try:
            await self.refresh()
            yield self
        finally:
            await self.close()

    async def close(self) -> None:
        """Stop listening and release the subscription. Idempotent."""
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener

        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()
            logger.debug(
                "Annotation session closed",
                conversation_id=str(self.conversation_id),
            )
