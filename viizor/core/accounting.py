"""
Accounting reconciler - keeps ``projects_count`` and ``storage_used_bytes``
on the user record in step with the artifact store.

Two paths:

* ``apply_delta`` - incremental update after a create or delete. It is a
  single ``UPDATE ... SET col = col + delta`` statement, floored at zero, so
  concurrent deltas for the same owner do not lose updates.
* ``resync`` - recomputes every user's counters from a full scan of the
  artifact store. It is idempotent and the authority whenever the
  incremental path has drifted.

Failures surface as AccountingError. Callers on the upload and delete paths
log them and carry on; the next resync repairs the counters.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from viizor.core.artifact_store import ArtifactStore
from viizor.core.errors import AccountingError
from viizor.models.iam.users import User

logger = logging.getLogger(__name__)


@dataclass
class OwnerTotals:
    projects_count: int = 0
    storage_used_bytes: int = 0


@dataclass
class ResyncReport:
    updates: list[dict] = field(default_factory=list)
    unknown_owners: list[str] = field(default_factory=list)
    projects_scanned: int = 0


def _floored(column, delta: int):
    new_value = column + delta
    return case((new_value < 0, 0), else_=new_value)


def _parse_owner(owner_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(owner_id))
    except ValueError:
        raise AccountingError(f"Invalid owner id {owner_id!r}")


def owner_totals(store: ArtifactStore, owner_id: str) -> OwnerTotals:
    """One owner's visible projects. Blocking; run it in a thread."""
    totals = OwnerTotals()
    for descriptor in store.iter_descriptors():
        if descriptor.owner_id == owner_id:
            totals.projects_count += 1
            totals.storage_used_bytes += descriptor.byte_size
    return totals


def scan_totals(store: ArtifactStore) -> tuple[dict[str, OwnerTotals], int]:
    """Group visible projects by owner. Blocking; run it in a thread."""
    totals: dict[str, OwnerTotals] = {}
    scanned = 0
    for descriptor in store.iter_descriptors():
        scanned += 1
        owner = totals.setdefault(descriptor.owner_id, OwnerTotals())
        owner.projects_count += 1
        owner.storage_used_bytes += descriptor.byte_size
    return totals, scanned


class AccountingReconciler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: ArtifactStore,
    ):
        self.session_factory = session_factory
        self.store = store

    async def apply_delta(self, owner_id: str, project_delta: int, bytes_delta: int) -> bool:
        """
        Add the deltas to the owner's counters.

        Returns False when no user record exists for ``owner_id``.
        """
        user_id = _parse_owner(owner_id)
        stmt = (
            update(User)
            .where(User.user_id == user_id)
            .values(
                projects_count=_floored(User.projects_count, project_delta),
                storage_used_bytes=_floored(User.storage_used_bytes, bytes_delta),
            )
            .execution_options(synchronize_session=False)
        )

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise AccountingError(f"Failed to update counters for {owner_id}: {e}") from e

        if not result.rowcount:
            logger.warning(f"No user record for owner {owner_id}; counters not updated")
            return False

        logger.info(
            f"Counters updated for user {owner_id}: projects {project_delta:+d}, bytes {bytes_delta:+d}"
        )
        return True

    async def resync(self) -> ResyncReport:
        """Overwrite every user's counters with the totals found on disk."""
        totals, scanned = await asyncio.to_thread(scan_totals, self.store)
        report = ResyncReport(projects_scanned=scanned)

        try:
            async with self.session_factory() as session:
                user_ids = (await session.execute(select(User.user_id))).scalars().all()
                known = set()
                for user_id in user_ids:
                    key = str(user_id)
                    known.add(key)
                    owner = totals.get(key, OwnerTotals())
                    await session.execute(
                        update(User)
                        .where(User.user_id == user_id)
                        .values(
                            projects_count=owner.projects_count,
                            storage_used_bytes=owner.storage_used_bytes,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    report.updates.append(
                        {
                            "userId": key,
                            "projectsCount": owner.projects_count,
                            "storageUsedBytes": owner.storage_used_bytes,
                        }
                    )
                await session.commit()
        except SQLAlchemyError as e:
            raise AccountingError(f"Counter resync failed: {e}") from e

        report.unknown_owners = sorted(set(totals) - known)
        if report.unknown_owners:
            logger.warning(
                f"Resync found projects for unknown owners: {report.unknown_owners}"
            )
        logger.info(
            f"Resync complete: {scanned} projects, {len(report.updates)} users updated"
        )
        return report
