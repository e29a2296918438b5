"""Collaborative comments with optimistic local application."""

from artifact_core.annotations.backend import CommentBackend
from artifact_core.annotations.service import CollaborativeAnnotationService, Notice

__all__ = ["CommentBackend", "CollaborativeAnnotationService", "Notice"]
