"""Artifacts router."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from artifact_core.models.artifact import (
    ApprovalRequest,
    Artifact as ArtifactSchema,
    ArtifactCreate,
    ArtifactUpdate,
    Variant,
    VariantEdit,
    VariantSelection,
)
from artifact_core.models.version import ArtifactVersion, StreamCommit
from services.artifact_store import ArtifactStore, VariantView, get_artifact_store

router = APIRouter()


class ShareResponse(BaseModel):
    """Share token of an artifact."""

    share_token: str


class DuplicateRequest(BaseModel):
    """Optional author of a duplicated artifact."""

    created_by: str | None = None


@router.post("", response_model=ArtifactSchema, status_code=status.HTTP_201_CREATED)
async def create_artifact(
    artifact_data: ArtifactCreate,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactSchema:
    """Create an artifact when generation begins."""
    return await store.create(artifact_data)


@router.get("/{artifact_id}", response_model=ArtifactSchema)
async def get_artifact(
    artifact_id: UUID,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactSchema:
    """Get an artifact by ID."""
    return await store.get(artifact_id)


@router.patch("/{artifact_id}", response_model=ArtifactSchema)
async def update_artifact(
    artifact_id: UUID,
    update_data: ArtifactUpdate,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactSchema:
    """Update artifact title or status."""
    return await store.update(artifact_id, update_data)


@router.delete("/{artifact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_artifact(
    artifact_id: UUID,
    store: ArtifactStore = Depends(get_artifact_store),
) -> None:
    """Delete an artifact and its version history."""
    await store.delete(artifact_id)


@router.get("/{artifact_id}/variants/{variant}", response_model=VariantView)
async def get_variant_content(
    artifact_id: UUID,
    variant: Variant,
    clean: bool = True,
    store: ArtifactStore = Depends(get_artifact_store),
) -> VariantView:
    """Get display content of a variant, with priority fallback."""
    return await store.get_variant_content(artifact_id, variant, clean=clean)


@router.put("/{artifact_id}/variants/{variant}", response_model=ArtifactVersion)
async def edit_variant(
    artifact_id: UUID,
    variant: Variant,
    edit: VariantEdit,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactVersion:
    """Replace one variant's content, appending an edited version."""
    return await store.edit_variant(artifact_id, variant, edit)


@router.put("/{artifact_id}/selected-variant", response_model=ArtifactSchema)
async def select_variant(
    artifact_id: UUID,
    selection: VariantSelection,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactSchema:
    """Change the selected variant."""
    return await store.set_selected_variant(artifact_id, selection.variant)


@router.post(
    "/{artifact_id}/commit",
    response_model=ArtifactVersion,
    status_code=status.HTTP_201_CREATED,
)
async def commit_stream(
    artifact_id: UUID,
    commit: StreamCommit,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactVersion:
    """Commit the finalized output of a generation stream."""
    return await store.commit_streamed_content(artifact_id, commit)


@router.post("/{artifact_id}/approval", response_model=ArtifactSchema)
async def transition_approval(
    artifact_id: UUID,
    request: ApprovalRequest,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactSchema:
    """Move the artifact through the approval workflow."""
    return await store.transition_approval(artifact_id, request)


@router.post(
    "/{artifact_id}/duplicate",
    response_model=ArtifactSchema,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_artifact(
    artifact_id: UUID,
    request: DuplicateRequest | None = None,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactSchema:
    """Duplicate an artifact with its current contents."""
    created_by = request.created_by if request else None
    return await store.duplicate(artifact_id, created_by=created_by)


@router.post("/{artifact_id}/share", response_model=ShareResponse)
async def share_artifact(
    artifact_id: UUID,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ShareResponse:
    """Get or create a share token."""
    return ShareResponse(share_token=await store.share(artifact_id))


@router.delete("/{artifact_id}/share", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_share(
    artifact_id: UUID,
    store: ArtifactStore = Depends(get_artifact_store),
) -> None:
    """Revoke the share token."""
    await store.revoke_share(artifact_id)
