"""Version history router."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from artifact_core.history import HistoryEntry, describe_history
from artifact_core.models.version import ArtifactVersion, RestoreRequest
from services.artifact_store import ArtifactStore, get_artifact_store

router = APIRouter()


@router.get("/{artifact_id}/versions", response_model=list[ArtifactVersion])
async def list_versions(
    artifact_id: UUID,
    limit: int | None = Query(default=None, ge=1, le=500),
    before: int | None = Query(default=None, ge=1),
    store: ArtifactStore = Depends(get_artifact_store),
) -> list[ArtifactVersion]:
    """List versions newest first, paginated by version number."""
    return await store.versions.page(artifact_id, limit=limit, before=before)


@router.get("/{artifact_id}/versions/current", response_model=ArtifactVersion)
async def get_current_version(
    artifact_id: UUID,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactVersion:
    """Get the current (highest-numbered) version."""
    version = await store.versions.current(artifact_id)
    if version is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Artifact has no versions",
        )
    return version


@router.get("/{artifact_id}/versions/history", response_model=list[HistoryEntry])
async def get_history(
    artifact_id: UUID,
    store: ArtifactStore = Depends(get_artifact_store),
) -> list[HistoryEntry]:
    """Full history labelled for display."""
    versions = [v async for v in store.versions.list_versions(artifact_id)]
    return describe_history(versions)


@router.get("/{artifact_id}/versions/{version_id}", response_model=ArtifactVersion)
async def get_version(
    artifact_id: UUID,
    version_id: UUID,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactVersion:
    """Get one version."""
    return await store.versions.get(artifact_id, version_id)


@router.post(
    "/{artifact_id}/versions/{version_id}/restore",
    response_model=ArtifactVersion,
    status_code=status.HTTP_201_CREATED,
)
async def restore_version(
    artifact_id: UUID,
    version_id: UUID,
    request: RestoreRequest | None = None,
    store: ArtifactStore = Depends(get_artifact_store),
) -> ArtifactVersion:
    """Restore a version; the restored content becomes a new version."""
    change_summary = request.change_summary if request else None
    return await store.restore_version(artifact_id, version_id, change_summary)
