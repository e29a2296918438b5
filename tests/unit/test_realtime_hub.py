"""Unit tests for the in-process realtime hub."""

import asyncio
from uuid import uuid4

import pytest

from artifact_core.errors import ChannelDisconnectedError
from artifact_core.models.realtime import ChangeEvent, ChangeOperation
from artifact_core.realtime.hub import RealtimeHub


def make_event(conversation_id, table="comments", operation=ChangeOperation.INSERT):
    """Build a change event for a conversation."""
    return ChangeEvent(
        operation=operation,
        table=table,
        conversation_id=conversation_id,
        row={"id": str(uuid4())},
    )


class TestRealtimeHub:
    """Tests for subscribe/publish/release."""

    @pytest.mark.asyncio
    async def test_publish_reaches_conversation_subscribers(self):
        """Test events reach every subscriber of the same conversation only."""
        hub = RealtimeHub()
        conversation_id = uuid4()
        first = await hub.subscribe(conversation_id)
        second = await hub.subscribe(conversation_id)
        other = await hub.subscribe(uuid4())

        event = make_event(conversation_id)
        delivered = await hub.publish(event)

        assert delivered == 2
        assert await first.get() == event
        assert await second.get() == event
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(other.get(), timeout=0.01)

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self):
        """Test publishing to an empty conversation is a no-op."""
        hub = RealtimeHub()
        assert await hub.publish(make_event(uuid4())) == 0

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        """Test releasing twice is safe and stops delivery."""
        hub = RealtimeHub()
        conversation_id = uuid4()
        subscription = await hub.subscribe(conversation_id)

        await subscription.close()
        await subscription.close()

        assert subscription.closed
        assert hub.subscriber_count(conversation_id) == 0
        assert await hub.publish(make_event(conversation_id)) == 0
        with pytest.raises(ChannelDisconnectedError):
            await subscription.get()

    @pytest.mark.asyncio
    async def test_context_manager_releases_on_error(self):
        """Test the subscription is released when the block raises."""
        hub = RealtimeHub()
        conversation_id = uuid4()

        with pytest.raises(ValueError):
            async with await hub.subscribe(conversation_id) as subscription:
                assert hub.subscriber_count(conversation_id) == 1
                raise ValueError("boom")

        assert subscription.closed
        assert hub.subscriber_count(conversation_id) == 0

    @pytest.mark.asyncio
    async def test_disconnect_wakes_waiting_subscriber(self):
        """Test a dropped subscriber gets ChannelDisconnectedError."""
        hub = RealtimeHub()
        conversation_id = uuid4()
        subscription = await hub.subscribe(conversation_id)

        waiter = asyncio.create_task(subscription.get())
        await asyncio.sleep(0)
        assert await hub.disconnect(conversation_id) == 1

        with pytest.raises(ChannelDisconnectedError):
            await waiter
        assert subscription.closed
        assert hub.subscriber_count(conversation_id) == 0

    @pytest.mark.asyncio
    async def test_disconnect_all(self):
        """Test dropping every conversation at once."""
        hub = RealtimeHub()
        await hub.subscribe(uuid4())
        await hub.subscribe(uuid4())

        assert await hub.disconnect() == 2

    @pytest.mark.asyncio
    async def test_async_iteration(self):
        """Test iterating a subscription yields published events in order."""
        hub = RealtimeHub()
        conversation_id = uuid4()
        subscription = await hub.subscribe(conversation_id)
        events = [make_event(conversation_id) for _ in range(3)]
        for event in events:
            await hub.publish(event)

        received = []
        async for event in subscription:
            received.append(event)
            if len(received) == 3:
                await subscription.close()

        assert received == events


class TestStalledSubscribers:
    """Tests for the per-subscriber event limit."""

    @pytest.mark.asyncio
    async def test_full_queue_drops_subscriber(self):
        """Test a subscriber that stops reading is dropped, not buffered forever."""
        hub = RealtimeHub(max_pending=2)
        conversation_id = uuid4()
        stalled = await hub.subscribe(conversation_id)
        reader = await hub.subscribe(conversation_id)

        assert await hub.publish(make_event(conversation_id)) == 2
        await reader.get()
        assert await hub.publish(make_event(conversation_id)) == 2
        await reader.get()
        assert await hub.publish(make_event(conversation_id)) == 1

        assert hub.subscriber_count(conversation_id) == 1
        with pytest.raises(ChannelDisconnectedError):
            await stalled.get()
        assert stalled.closed
        await stalled.close()
        assert hub.subscriber_count(conversation_id) == 1
        await reader.close()

    @pytest.mark.asyncio
    async def test_disconnect_with_full_queue(self):
        """Test a dropped subscriber with unread events still sees the disconnect."""
        hub = RealtimeHub(max_pending=1)
        conversation_id = uuid4()
        subscription = await hub.subscribe(conversation_id)
        await hub.publish(make_event(conversation_id))

        assert await hub.disconnect(conversation_id) == 1
        with pytest.raises(ChannelDisconnectedError):
            await subscription.get()

    def test_limit_must_be_positive(self):
        """Test an unbounded limit is refused."""
        with pytest.raises(ValueError):
            RealtimeHub(max_pending=0)
