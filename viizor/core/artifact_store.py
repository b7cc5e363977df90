"""
Directory-per-project persistence for converted point clouds.

Layout under the store root::

    <root>/<project_id>/            converter output tree
    <root>/<project_id>/index.html  viewer entry point
    <root>/<project_id>/project.json  descriptor (written last)
    <root>/<project_id>/.converting  heartbeat while the converter runs
    <root>/.records/<name>.json     singleton records (demo pointer)

A project directory without a readable descriptor is an in-progress or
failed conversion and every read treats it as absent.
A directory whose
heartbeat marker was touched within ``CONVERSION_LIVENESS_SECONDS`` belongs to
a running conversion and is never swept.

All methods are blocking; async callers run them through
``asyncio.to_thread``.
"""

import logging
import os
import re
import shutil
import tempfile
import time
from collections.abc import Iterator
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel

from viizor.core.errors import NotFoundError
from viizor.models.pydantic_models.project import ProjectDescriptor

logger = logging.getLogger(__name__)

DESCRIPTOR_NAME = "project.json"
VIEWER_NAME = "index.html"
RECORDS_DIR = ".records"
IN_PROGRESS_MARKER = ".converting"

# The converter heartbeat touches the marker well inside this window.
CONVERSION_LIVENESS_SECONDS = 300

_PROJECT_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

RecordT = TypeVar("RecordT", bound=BaseModel)


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` so that readers see either the old file or the new one."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class ArtifactStore:
    def __init__(self, root: Path | str, public_prefix: str = "/data/converted"):
        self.root = Path(root)
        self.public_prefix = public_prefix.rstrip("/")

    # ── layout ────────────────────────────────────────────────────────────

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def project_dir(self, project_id: str) -> Path:
        """Return the directory for ``project_id``.

        Ids that could escape the store root are reported as not found.
        """
        if not project_id or not _PROJECT_ID_RE.match(project_id):
            raise NotFoundError(f"Project {project_id!r} not found")
        return self.root / project_id

    def viewer_url(self, project_id: str) -> str:
        return f"{self.public_prefix}/{project_id}/{VIEWER_NAME}"

    def artifact_root_url(self, project_id: str) -> str:
        return f"{self.public_prefix}/{project_id}/"

    def project_exists(self, project_id: str) -> bool:
        try:
            return self.project_dir(project_id).is_dir()
        except NotFoundError:
            return False

    def create_project_dir(self, project_id: str) -> Path:
        self.ensure_root()
        path = self.project_dir(project_id)
        path.mkdir(exist_ok=False)
        return path

    def remove_project(self, project_id: str) -> None:
        path = self.project_dir(project_id)
        if not path.is_dir():
            raise NotFoundError(f"Project {project_id!r} not found")
        shutil.rmtree(path)
        logger.info(f"Removed project directory {path}")

    # ── descriptors ───────────────────────────────────────────────────────

    def read_descriptor(self, project_id: str) -> ProjectDescriptor | None:
        """Return the descriptor, or None when it is missing or unreadable."""
        path = self.project_dir(project_id) / DESCRIPTOR_NAME
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read descriptor {path}: {e}")
            return None

        try:
            descriptor = ProjectDescriptor.model_validate_json(text)
        except ValueError as e:
            logger.warning(f"Ignoring corrupt descriptor {path}: {e}")
            return None

        if descriptor.id != project_id:
            logger.warning(
                f"Ignoring descriptor {path}: id {descriptor.id!r} does not match directory"
            )
            return None
        return descriptor

    def write_descriptor(self, descriptor: ProjectDescriptor) -> Path:
        path = self.project_dir(descriptor.id) / DESCRIPTOR_NAME
        atomic_write_text(path, descriptor.model_dump_json(by_alias=True, indent=2))
        return path

    def iter_project_ids(self) -> Iterator[str]:
        if not self.root.is_dir():
            return
        for entry in os.scandir(self.root):
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            if _PROJECT_ID_RE.match(entry.name):
                yield entry.name

    def iter_descriptors(self) -> Iterator[ProjectDescriptor]:
        """Yield every visible project; unreadable descriptors are skipped."""
        for project_id in self.iter_project_ids():
            descriptor = self.read_descriptor(project_id)
            if descriptor is not None:
                yield descriptor

    def list_all(self) -> list[ProjectDescriptor]:
        return sorted(self.iter_descriptors(), key=lambda d: d.uploaded_at, reverse=True)

    def list_for_owner(self, owner_id: str) -> list[ProjectDescriptor]:
        return [d for d in self.list_all() if d.owner_id == owner_id]

    # ── conversions in progress ───────────────────────────────────────────

    def mark_in_progress(self, project_id: str) -> None:
        """Create or refresh the heartbeat marker of a running conversion."""
        (self.project_dir(project_id) / IN_PROGRESS_MARKER).touch()

    def clear_in_progress(self, project_id: str) -> None:
        (self.project_dir(project_id) / IN_PROGRESS_MARKER).unlink(missing_ok=True)

    def _marker_mtime(self, path: Path) -> float | None:
        try:
            return (path / IN_PROGRESS_MARKER).stat().st_mtime
        except FileNotFoundError:
            return None

    def is_converting(self, project_id: str, now: float | None = None) -> bool:
        """True while the directory's heartbeat is fresh."""
        now = time.time() if now is None else now
        try:
            heartbeat = self._marker_mtime(self.project_dir(project_id))
        except NotFoundError:
            return False
        return heartbeat is not None and now - heartbeat < CONVERSION_LIVENESS_SECONDS

    def find_orphans(self, older_than_seconds: float, now: float | None = None) -> list[str]:
        """
        Ids of descriptor-less directories idle for longer than the grace
        period. Directories with a live heartbeat are skipped whatever the
        grace period.
        """
        now = time.time() if now is None else now
        orphans = []
        for project_id in self.iter_project_ids():
            path = self.root / project_id
            if (path / DESCRIPTOR_NAME).exists():
                continue
            if self.is_converting(project_id, now=now):
                continue
            try:
                last_active = max(path.stat().st_mtime, self._marker_mtime(path) or 0)
            except FileNotFoundError:
                continue
            if now - last_active >= older_than_seconds:
                orphans.append(project_id)
        return orphans

    def sweep_orphans(self, older_than_seconds: float) -> list[str]:
        removed = []
        for project_id in self.find_orphans(older_than_seconds):
            try:
                self.remove_project(project_id)
            except NotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not remove orphan {project_id}: {e}")
                continue
            removed.append(project_id)
        if removed:
            logger.info(f"Swept {len(removed)} orphaned project directories")
        return removed

    # ── singleton records ─────────────────────────────────────────────────

    def _record_path(self, name: str) -> Path:
        return self.root / RECORDS_DIR / f"{name}.json"

    def read_record(self, name: str, model: type[RecordT]) -> RecordT | None:
        path = self._record_path(name)
        try:
            return model.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable record {path}: {e}")
            return None

    def write_record(self, name: str, record: BaseModel) -> None:
        path = self._record_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(path, record.model_dump_json(by_alias=True, indent=2))
