"""Comment backend interface."""

from abc import ABC, abstractmethod
from uuid import UUID

from artifact_core.models.comment import Comment, CommentCreate, CommentUpdate


class CommentBackend(ABC):
    """Authoritative comment store as seen by the annotation service.

    Implemented by the database repository on the server and by the HTTP
    client on the consumer side.
    """

    @abstractmethod
    async def list_comments(
        self,
        conversation_id: UUID,
        artifact_id: UUID | None = None,
        include_resolved: bool = True,
    ) -> list[Comment]:
        """List comments of a conversation, oldest first.

        Args:
            conversation_id: Owning conversation
            artifact_id: Only comments attached to this artifact
            include_resolved: Whether resolved comments are returned

        Returns:
            Comments ordered by creation time

        Raises:
            StoreUnavailableError: If the store cannot be read
        """

    @abstractmethod
    async def create_comment(
        self, data: CommentCreate, fields: set[str] | None = None
    ) -> Comment:
        """Persist a new comment.

        Args:
            data: Comment to create, carrying the client correlation ref
            fields: When set, only these fields are written (reduced shape)

        Returns:
            The stored comment with server-assigned id and timestamps

        Raises:
            SchemaDriftError: If the store rejects the shape of the write
            StoreUnavailableError: If the write fails otherwise
        """

    @abstractmethod
    async def update_comment(self, comment_id: UUID, changes: CommentUpdate) -> Comment:
        """Apply field changes to a stored comment.

        Raises:
            CommentNotFoundError: If the comment no longer exists
            StoreUnavailableError: If the write fails
        """

    @abstractmethod
    async def delete_comment(self, comment_id: UUID) -> None:
        """Delete a stored comment.

        Raises:
            CommentNotFoundError: If the comment no longer exists
            StoreUnavailableError: If the write fails
        """
