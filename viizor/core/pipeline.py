"""
Ingestion pipeline - upload intake, conversion, metadata, accounting.

Within one upload the steps run strictly in order: stage the file, create
the project directory and run the converter, write the descriptor, apply the
accounting delta. Once staging succeeds the remaining steps run in their own
task, so a client that disconnects mid-conversion does not stop the
converter or leave a converted project unpublished.
"""

import asyncio
import logging

from viizor.core.accounting import AccountingReconciler
from viizor.core.converter import ConversionOrchestrator
from viizor.core.errors import AccountingError, ConversionError
from viizor.core.intake import AsyncReadable, UploadIntake
from viizor.core.metadata import MetadataWriter
from viizor.models.pydantic_models.project import ProjectDescriptor, StagingHandle

logger = logging.getLogger(__name__)

# Strong references to in-flight conversions.
_background_tasks: set[asyncio.Task] = set()


class IngestionPipeline:
    def __init__(
        self,
        intake: UploadIntake,
        orchestrator: ConversionOrchestrator,
        metadata_writer: MetadataWriter,
        accounting: AccountingReconciler,
    ):
        self.intake = intake
        self.orchestrator = orchestrator
        self.metadata_writer = metadata_writer
        self.accounting = accounting

    async def ingest(
        self,
        stream: AsyncReadable,
        original_name: str | None,
        owner_id: str,
        declared_size: int | None = None,
    ) -> ProjectDescriptor:
        handle = await self.intake.stage(
            stream, original_name, owner_id, declared_size=declared_size
        )

        task = asyncio.create_task(self._complete(handle))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        return await asyncio.shield(task)

    async def _complete(self, handle: StagingHandle) -> ProjectDescriptor:
        result = await self.orchestrator.convert(handle)

        try:
            descriptor = await asyncio.to_thread(
                self.metadata_writer.write, result.project_id, handle
            )
        except OSError as e:
            logger.error(f"Could not publish project {result.project_id}: {e}")
            raise ConversionError("Could not publish project", diagnostics=str(e))

        try:
            await self.accounting.apply_delta(handle.owner_id, 1, handle.byte_size)
        except AccountingError as e:
            logger.warning(f"Error updating counters for project {descriptor.id}: {e}")

        return descriptor
