"""
Deletion workflow - removes a project directory and reverses its
contribution to the owner's counters.
"""

import asyncio
import logging
from dataclasses import dataclass

from viizor.core.accounting import AccountingReconciler
from viizor.core.artifact_store import ArtifactStore
from viizor.core.errors import (
    AccountingError,
    ConversionInProgressError,
    NotFoundError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)


@dataclass
class DeletionResult:
    project_id: str
    owner_id: str | None
    byte_size: int
    accounted: bool


class DeletionWorkflow:
    def __init__(self, store: ArtifactStore, accounting: AccountingReconciler):
        self.store = store
        self.accounting = accounting

    async def delete_project(
        self,
        project_id: str,
        requester_id: str | None = None,
        is_admin: bool = False,
    ) -> DeletionResult:
        """
        Delete ``project_id``.

        ``requester_id`` is checked against the descriptor's owner unless the
        caller is an admin (or no requester is given, for internal callers).
        The directory is removed even when the descriptor is missing or
        corrupt; in that case accounting is skipped.
        """
        if not await asyncio.to_thread(self.store.project_exists, project_id):
            raise NotFoundError(f"Project {project_id!r} not found")

        descriptor = await asyncio.to_thread(self.store.read_descriptor, project_id)
        if descriptor is None and await asyncio.to_thread(
            self.store.is_converting, project_id
        ):
            raise ConversionInProgressError(f"Project {project_id!r} is still being converted")

        owner_id = descriptor.owner_id if descriptor else None
        byte_size = descriptor.byte_size if descriptor else 0

        if requester_id is not None and not is_admin and owner_id != requester_id:
            raise PermissionDeniedError(f"Project {project_id!r} belongs to another user")

        await asyncio.to_thread(self.store.remove_project, project_id)

        accounted = False
        if owner_id:
            try:
                accounted = await self.accounting.apply_delta(owner_id, -1, -byte_size)
            except AccountingError as e:
                logger.warning(f"Error updating counters after deleting {project_id}: {e}")
        else:
            logger.warning(f"Deleted project {project_id} without a readable descriptor")

        return DeletionResult(
            project_id=project_id,
            owner_id=owner_id,
            byte_size=byte_size,
            accounted=accounted,
        )
