"""
Demo pointer - the single globally published project.

Stored as a record in the artifact store, so it survives restarts. Only
checked against the store when it is set; a pointer whose project has since
been deleted is returned unchanged.
"""

import asyncio
import logging
from datetime import datetime, timezone

from viizor.core.artifact_store import ArtifactStore
from viizor.core.errors import NotFoundError, ValidationError
from viizor.models.pydantic_models.project import DemoPointer

logger = logging.getLogger(__name__)

DEMO_RECORD = "demo"


class DemoPointerService:
    def __init__(self, store: ArtifactStore):
        self.store = store

    async def set_demo(self, project_id: str, display_name: str) -> DemoPointer:
        if not project_id or not display_name:
            raise ValidationError("projectId and displayName are required")

        if not await asyncio.to_thread(self.store.project_exists, project_id):
            raise NotFoundError(f"Project {project_id!r} not found")

        pointer = DemoPointer(
            project_id=project_id,
            display_name=display_name,
            set_at=datetime.now(timezone.utc),
        )
        await asyncio.to_thread(self.store.write_record, DEMO_RECORD, pointer)
        logger.info(f"Demo pointer set to project {project_id}")
        return pointer

    async def get_demo(self) -> DemoPointer | None:
        return await asyncio.to_thread(self.store.read_record, DEMO_RECORD, DemoPointer)
