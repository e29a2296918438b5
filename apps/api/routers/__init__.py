"""API routers."""

from routers import artifacts, comments, conversations, realtime, shared, versions

__all__ = [
    "artifacts",
    "comments",
    "conversations",
    "realtime",
    "shared",
    "versions",
]
