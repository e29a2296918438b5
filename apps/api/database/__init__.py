"""Database configuration and models."""

from database.models import Artifact, ArtifactVersion, Base, Comment, Conversation
from database.session import get_async_db, get_async_engine, get_session_factory

__all__ = [
    "get_async_db",
    "get_async_engine",
    "get_session_factory",
    "Artifact",
    "ArtifactVersion",
    "Base",
    "Comment",
    "Conversation",
]
