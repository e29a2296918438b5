"""Shared artifacts router (read-only access by token)."""

from fastapi import APIRouter, Depends

from artifact_core.models.artifact import Artifact as ArtifactSchema
from services.artifact_store import ArtifactStore, get_artifact_store

router = APIRouter()


@router.get("/{token}", response_model=ArtifactSchema)
async def get_shared_artifact(
    token: str,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactSchema:
    """Get a shared artifact by its share token."""
    return await store.get_shared(token)
