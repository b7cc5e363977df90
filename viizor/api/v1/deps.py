"""
FastAPI dependencies that assemble the pipeline components from settings.

Components are cheap to build, so each request gets fresh instances bound
to the current settings. Tests override ``get_session_factory`` and point
the settings paths at temporary directories.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from viizor.config import settings
from viizor.core.accounting import AccountingReconciler
from viizor.core.artifact_store import ArtifactStore
from viizor.core.converter import ConversionOrchestrator
from viizor.core.deletion import DeletionWorkflow
from viizor.core.demo import DemoPointerService
from viizor.core.intake import UploadIntake
from viizor.core.metadata import MetadataWriter
from viizor.core.pipeline import IngestionPipeline
from viizor.db.session import get_session_local


# Database dependency - use get_db directly with FastAPI's Depends()
# The pipeline opens its own sessions because a conversion can outlive the
# request that started it.


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return get_session_local()


def get_artifact_store() -> ArtifactStore:
    return ArtifactStore(settings.artifact_root, public_prefix=settings.public_prefix)


def get_accounting(
    store: ArtifactStore = Depends(get_artifact_store),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AccountingReconciler:
    return AccountingReconciler(session_factory, store)


def get_pipeline(
    store: ArtifactStore = Depends(get_artifact_store),
    accounting: AccountingReconciler = Depends(get_accounting),
) -> IngestionPipeline:
    intake = UploadIntake(
        settings.staging_root,
        max_bytes=settings.max_upload_bytes,
        allowed_extensions=settings.allowed_extensions,
        chunk_size=settings.upload_chunk_bytes,
    )
    orchestrator = ConversionOrchestrator(
        store,
        settings.converter_path,
        timeout_seconds=settings.converter_timeout_seconds,
        remove_failed=settings.remove_failed_conversions,
        heartbeat_seconds=settings.conversion_heartbeat_seconds,
    )
    return IngestionPipeline(intake, orchestrator, MetadataWriter(store), accounting)


def get_deletion_workflow(
    store: ArtifactStore = Depends(get_artifact_store),
    accounting: AccountingReconciler = Depends(get_accounting),
) -> DeletionWorkflow:
    return DeletionWorkflow(store, accounting)


def get_demo_service(
    store: ArtifactStore = Depends(get_artifact_store),
) -> DemoPointerService:
    return DemoPointerService(store)
