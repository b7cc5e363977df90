"""
Periodic counter resync.

Recomputes every user's ``projects_count`` and ``storage_used_bytes`` from
the artifact store, repairing any drift left by the incremental updates.
"""

import asyncio
import logging

from celery import shared_task

from viizor.config import settings
from viizor.core.accounting import AccountingReconciler
from viizor.core.artifact_store import ArtifactStore
from viizor.db.session import dispose_engine, get_session_local
from viizor.tasks.task_lock import with_task_lock

logger = logging.getLogger(__name__)


async def _resync_all() -> dict:
    store = ArtifactStore(settings.artifact_root, public_prefix=settings.public_prefix)
    try:
        reconciler = AccountingReconciler(get_session_local(), store)
        report = await reconciler.resync()
        return {
            "status": "completed",
            "users_updated": len(report.updates),
            "projects_scanned": report.projects_scanned,
            "unknown_owners": report.unknown_owners,
        }
    except Exception as exc:
        logger.error(f"Counter resync failed: {exc}", exc_info=True)
        raise
    finally:
        await dispose_engine()


@shared_task(name="accounting.resync_all")
@with_task_lock(lock_name="accounting.resync_all")
def resync_all() -> dict:
    return asyncio.run(_resync_all())
