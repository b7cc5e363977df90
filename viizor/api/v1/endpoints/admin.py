"""
Admin endpoints - cross-user project listing, stats and counter maintenance.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from viizor.api.v1.deps import get_accounting, get_artifact_store
from viizor.api.v1.helpers.authentication import AuthenticatedUser, require_admin
from viizor.api.v1.helpers.responses import error_response, success_response
from viizor.config import settings
from viizor.core.accounting import AccountingReconciler
from viizor.core.artifact_store import ArtifactStore
from viizor.core.errors import AccountingError
from viizor.db.session import get_db
from viizor.models.iam.enums import Plan
from viizor.models.iam.users import User
from viizor.models.pydantic_models.project import ProjectDescriptor

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin)])


class AdminProject(ProjectDescriptor):
    owner_email: str


class AdminStats(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    users: dict[str, int]
    projects: dict[str, int]


@router.get("/projects", response_model=list[AdminProject])
async def list_all_projects(
    db: AsyncSession = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store),
):
    """Every published project with its owner's email, newest first."""
    descriptors = await asyncio.to_thread(store.list_all)
    rows = (await db.execute(select(User.user_id, User.email))).all()
    emails = {str(user_id): email for user_id, email in rows}

    return [
        AdminProject(
            **d.model_dump(), owner_email=emails.get(d.owner_id, "unknown")
        )
        for d in descriptors
    ]


@router.get("/stats", response_model=AdminStats)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    store: ArtifactStore = Depends(get_artifact_store),
):
    rows = (
        await db.execute(select(User.plan, func.count()).group_by(User.plan))
    ).all()
    by_plan = {plan.value: 0 for plan in Plan}
    by_plan.update({plan: count for plan, count in rows})

    project_count = await asyncio.to_thread(
        lambda: sum(1 for _ in store.iter_descriptors())
    )
    return AdminStats(
        users={"total": sum(by_plan.values()), **by_plan},
        projects={"total": project_count},
    )


@router.post("/resync")
async def resync_counters(
    admin: AuthenticatedUser = Depends(require_admin),
    accounting: AccountingReconciler = Depends(get_accounting),
):
    """Recompute every user's counters from the artifact store."""
    logger.info(f"Counter resync requested by {admin.user_id}")
    try:
        report = await accounting.resync()
    except AccountingError as e:
        raise error_response(message="Error syncing counters", errors=[str(e)], status_code=500)

    return success_response(
        message=f"Counters synced - {len(report.updates)} users updated",
        data={
            "updates": report.updates,
            "unknownOwners": report.unknown_owners,
            "projectsScanned": report.projects_scanned,
        },
    )


@router.post("/sweep-orphans")
async def sweep_orphans(store: ArtifactStore = Depends(get_artifact_store)):
    """Remove project directories that never received a descriptor."""
    removed = await asyncio.to_thread(store.sweep_orphans, settings.orphan_grace_seconds)
    return success_response(
        message=f"Removed {len(removed)} orphaned project directories",
        data={"removed": removed},
    )
