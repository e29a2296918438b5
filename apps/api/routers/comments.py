"""Comments router."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from artifact_core.models.comment import (
    Comment as CommentSchema,
    CommentCounts,
    CommentCreate,
    CommentUpdate,
)
from services.comment_repository import CommentRepository, get_comment_repository

router = APIRouter()


@router.get("/conversations/{conversation_id}/comments", response_model=list[CommentSchema])
async def list_comments(
    conversation_id: UUID,
    artifact_id: UUID | None = None,
    include_resolved: bool = True,
    repository: CommentRepository = Depends(get_comment_repository),
) -> list[CommentSchema]:
    """List comments of a conversation, oldest first."""
    return await repository.list_comments(
        conversation_id,
        artifact_id=artifact_id,
        include_resolved=include_resolved,
    )


@router.get("/conversations/{conversation_id}/comments/counts", response_model=CommentCounts)
async def comment_counts(
    conversation_id: UUID,
    artifact_id: UUID | None = None,
    repository: CommentRepository = Depends(get_comment_repository),
) -> CommentCounts:
    """Open/resolved comment counts."""
    return await repository.counts(conversation_id, artifact_id=artifact_id)


@router.post(
    "/conversations/{conversation_id}/comments",
    response_model=CommentSchema,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    conversation_id: UUID,
    comment_data: CommentCreate,
    reduced: bool = False,
    repository: CommentRepository = Depends(get_comment_repository),
) -> CommentSchema:
    """Create a comment.

    With ``reduced=true`` only the fields present in the body are written,
    for clients falling back after a schema drift error.
    """
    if comment_data.conversation_id != conversation_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="conversation_id does not match the path",
        )

    fields = set(comment_data.model_fields_set) if reduced else None
    return await repository.create_comment(comment_data, fields=fields)


@router.patch("/comments/{comment_id}", response_model=CommentSchema)
async def update_comment(
    comment_id: UUID,
    update_data: CommentUpdate,
    repository: CommentRepository = Depends(get_comment_repository),
) -> CommentSchema:
    """Resolve, reassign or reprioritize a comment."""
    return await repository.update_comment(comment_id, update_data)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: UUID,
    repository: CommentRepository = Depends(get_comment_repository),
) -> None:
    """Delete a comment."""
    await repository.delete_comment(comment_id)
