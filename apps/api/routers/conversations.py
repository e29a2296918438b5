"""Conversations router."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from artifact_core.models.artifact import (
    ArtifactSummary,
    Conversation as ConversationSchema,
    ConversationCreate,
)
from database.models import Conversation
from database.session import get_async_db
from services.artifact_store import ArtifactStore, get_artifact_store

router = APIRouter()


async def _get_conversation(db: AsyncSession, conversation_id: UUID) -> Conversation:
    conversation = await db.get(Conversation, conversation_id)
    if not conversation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
    return conversation


@router.post("", response_model=ConversationSchema, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    conversation_data: ConversationCreate,
    db: AsyncSession = Depends(get_async_db),
) -> ConversationSchema:
    """Create a conversation."""
    conversation = Conversation(**conversation_data.model_dump())
    db.add(conversation)
    await db.commit()
    await db.refresh(conversation)

    return ConversationSchema.model_validate(conversation)


@router.get("/{conversation_id}", response_model=ConversationSchema)
async def get_conversation(
    conversation_id: UUID,
    db: AsyncSession = Depends(get_async_db),
) -> ConversationSchema:
    """Get a conversation by ID."""
    return ConversationSchema.model_validate(await _get_conversation(db, conversation_id))


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: UUID,
    db: AsyncSession = Depends(get_async_db),
) -> None:
    """Delete a conversation with its artifacts, versions and comments."""
    conversation = await _get_conversation(db, conversation_id)
    await db.delete(conversation)
    await db.commit()


@router.get("/{conversation_id}/artifacts", response_model=list[ArtifactSummary])
async def list_conversation_artifacts(
    conversation_id: UUID,
    store: ArtifactStore = Depends(get_artifact_store),
) -> list[ArtifactSummary]:
    """List artifacts of a conversation."""
    await _get_conversation(store.db, conversation_id)
    return await store.list_for_conversation(conversation_id)
