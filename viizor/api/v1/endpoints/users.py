"""
User profile endpoints.

Project count and storage use are computed from the artifact store on each
request, so they are current even when the stored counters have drifted.
The stored counters are left for the resync to repair.
"""

import asyncio

from fastapi import APIRouter, Depends

from viizor.api.v1.deps import get_artifact_store
from viizor.api.v1.helpers.authentication import AuthenticatedUser, get_current_user
from viizor.core.accounting import owner_totals
from viizor.core.artifact_store import ArtifactStore
from viizor.models.pydantic_models.core_models import CoreUserModel, StorageSummary

router = APIRouter(prefix="/users", tags=["Users"])


async def _current_profile(user: AuthenticatedUser, store: ArtifactStore) -> CoreUserModel:
    totals = await asyncio.to_thread(owner_totals, store, user.owner_id)
    return user.user.model_copy(
        update={
            "projects_count": totals.projects_count,
            "storage_used_bytes": totals.storage_used_bytes,
        }
    )


@router.get("/me", response_model=CoreUserModel)
async def get_me(
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: ArtifactStore = Depends(get_artifact_store),
):
    """Return the authenticated user's profile."""
    return await _current_profile(current_user, store)


@router.get("/storage", response_model=StorageSummary)
async def get_storage(
    current_user: AuthenticatedUser = Depends(get_current_user),
    store: ArtifactStore = Depends(get_artifact_store),
):
    u = await _current_profile(current_user, store)
    limit = u.storage_limit_bytes
    percentage = round(u.storage_used_bytes / limit * 100) if limit else 0
    return StorageSummary(used=u.storage_used_bytes, limit=limit, percentage=percentage)
