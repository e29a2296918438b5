"""Realtime change notification channel."""

from artifact_core.realtime.hub import (
    QueueSubscription,
    RealtimeChannel,
    RealtimeHub,
    Subscription,
    get_realtime_hub,
    reset_realtime_hub,
)

__all__ = [
    "QueueSubscription",
    "RealtimeChannel",
    "RealtimeHub",
    "Subscription",
    "get_realtime_hub",
    "reset_realtime_hub",
]
