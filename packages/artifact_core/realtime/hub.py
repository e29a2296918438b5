"""Realtime change channel scoped by conversation.

A subscription is acquired when a viewer enters a conversation and released
when it leaves. Release is idempotent and also happens when the subscription
is used as an async context manager and the block exits by any path.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Optional
from uuid import UUID

import structlog

from artifact_core.errors import ChannelDisconnectedError
from artifact_core.models.realtime import ChangeEvent

logger = structlog.get_logger()

# Queue marker put by the channel when it drops a subscriber
_DISCONNECTED = object()

# Undelivered events a subscriber may hold before it is dropped
DEFAULT_MAX_PENDING = 1000


class Subscription(ABC):
    """Receiving end of a conversation channel."""

    def __init__(self, conversation_id: UUID):
        self.conversation_id = conversation_id

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once released or dropped."""
        ...

    @abstractmethod
    async def get(self) -> ChangeEvent:
        """Wait for the next change event.

        Raises:
            ChannelDisconnectedError: If the channel dropped this subscription
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the subscription. Safe to call more than once."""
        ...

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        while not self.closed:
            yield await self.get()


class RealtimeChannel(ABC):
    """Push-notification channel for conversation-scoped row changes."""

    @abstractmethod
    async def subscribe(self, conversation_id: UUID) -> Subscription:
        """Open a subscription for one conversation."""
        ...

    @abstractmethod
    async def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to every subscriber of its conversation.

        Returns:
            Number of subscribers that received the event
        """
        ...


class QueueSubscription(Subscription):
    """Subscription backed by an asyncio queue owned by a RealtimeHub."""

    def __init__(
        self,
        hub: "RealtimeHub",
        conversation_id: UUID,
        max_pending: int = DEFAULT_MAX_PENDING,
    ):
        super().__init__(conversation_id)
        self._hub = hub
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._dropped = False
        self._released = False

    @property
    def closed(self) -> bool:
        return self._dropped or self._released

    def _deliver(self, event: ChangeEvent) -> bool:
        """Queue an event; a full queue drops the subscription instead."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._drop()
            return False
        return True

    def _drop(self) -> None:
        # Pending events are discarded; the subscriber refetches on reconnect
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_DISCONNECTED)

    async def get(self) -> ChangeEvent:
        if self._dropped:
            raise ChannelDisconnectedError(
                f"Subscription to {self.conversation_id} was dropped"
            )
        if self._released:
            raise ChannelDisconnectedError(
                f"Subscription to {self.conversation_id} is closed"
            )

        item = await self._queue.get()
        if item is _DISCONNECTED:
            self._dropped = True
            raise ChannelDisconnectedError(
                f"Subscription to {self.conversation_id} was dropped"
            )
        return item

    async def close(self) -> None:
        if self._released:
            return
        self._released = True
        await self._hub._remove(self)


class RealtimeHub(RealtimeChannel):
    """In-process channel: one queue per subscriber, grouped by conversation."""

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING):
        """Initialize the hub.

        Args:
            max_pending: Events a subscriber may leave unread before it is
                dropped as stalled
        """
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self.max_pending = max_pending
        self._subscribers: dict[UUID, set[QueueSubscription]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, conversation_id: UUID) -> QueueSubscription:
        """Subscribe to change events for a conversation.

        Args:
            conversation_id: Conversation to subscribe to

        Returns:
            Subscription that will receive events
        """
        subscription = QueueSubscription(self, conversation_id, self.max_pending)
        async with self._lock:
            self._subscribers.setdefault(conversation_id, set()).add(subscription)
        logger.debug("Realtime subscription opened", conversation_id=str(conversation_id))
        return subscription

    async def _remove(self, subscription: QueueSubscription) -> None:
        async with self._lock:
            subscribers = self._subscribers.get(subscription.conversation_id)
            if subscribers is None:
                return
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.conversation_id]
        logger.debug(
            "Realtime subscription released",
            conversation_id=str(subscription.conversation_id),
        )

    async def publish(self, event: ChangeEvent) -> int:
        async with self._lock:
            subscribers = list(self._subscribers.get(event.conversation_id, ()))
        stalled = [s for s in subscribers if not s._deliver(event)]
        if stalled:
            async with self._lock:
                current = self._subscribers.get(event.conversation_id)
                if current is not None:
                    current.difference_update(stalled)
                    if not current:
                        del self._subscribers[event.conversation_id]
            logger.warning(
                "Stalled realtime subscribers dropped",
                conversation_id=str(event.conversation_id),
                count=len(stalled),
                max_pending=self.max_pending,
            )
        return len(subscribers) - len(stalled)

    async def disconnect(self, conversation_id: UUID | None = None) -> int:
        """Drop subscribers, as a lost connection would.

        Args:
            conversation_id: Conversation whose subscribers to drop (all if None)

        Returns:
            Number of subscriptions dropped
        """
        async with self._lock:
            if conversation_id is None:
                dropped = [s for subs in self._subscribers.values() for s in subs]
                self._subscribers.clear()
            else:
                dropped = list(self._subscribers.pop(conversation_id, ()))
        for subscription in dropped:
            subscription._drop()
        if dropped:
            logger.warning(
                "Realtime subscribers dropped",
                conversation_id=str(conversation_id) if conversation_id else None,
                count=len(dropped),
            )
        return len(dropped)

    def subscriber_count(self, conversation_id: UUID) -> int:
        """Get number of subscribers for a conversation."""
        return len(self._subscribers.get(conversation_id, ()))


# Global hub instance
_hub: Optional[RealtimeHub] = None


def get_realtime_hub() -> RealtimeHub:
    """Get the global realtime hub."""
    global _hub
    if _hub is None:
        _hub = RealtimeHub()
    return _hub


def reset_realtime_hub() -> None:
    """Reset the global hub (for testing)."""
    global _hub
    _hub = None
