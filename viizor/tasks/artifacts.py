"""
Orphan sweep - removes project directories that never received a
descriptor (failed or abandoned conversions) once they are older than the
grace period.
"""

import logging

from celery import shared_task

from viizor.config import settings
from viizor.core.artifact_store import ArtifactStore
from viizor.tasks.task_lock import with_task_lock

logger = logging.getLogger(__name__)


def _sweep_orphans(older_than_seconds: float | None = None) -> dict:
    grace = settings.orphan_grace_seconds if older_than_seconds is None else older_than_seconds
    store = ArtifactStore(settings.artifact_root, public_prefix=settings.public_prefix)
    removed = store.sweep_orphans(grace)
    if not removed:
        logger.info("Orphan sweep: nothing to remove")
    return {"removed": removed, "grace_seconds": grace}


@shared_task(name="artifacts.sweep_orphans")
@with_task_lock(lock_name="artifacts.sweep_orphans")
def sweep_orphans(older_than_seconds: float | None = None) -> dict:
    return _sweep_orphans(older_than_seconds)
