"""
Point-cloud endpoints - upload, list and delete the caller's projects.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from viizor.api.v1.deps import (
    get_artifact_store,
    get_deletion_workflow,
    get_pipeline,
)
from viizor.api.v1.helpers.authentication import AuthenticatedUser, get_current_user
from viizor.api.v1.helpers.responses import pipeline_error_response, success_response
from viizor.core.artifact_store import ArtifactStore
from viizor.core.deletion import DeletionWorkflow
from viizor.core.errors import PipelineError
from viizor.core.pipeline import IngestionPipeline
from viizor.models.pydantic_models.project import ProjectDescriptor

logger = logging.getLogger(__name__)
router = APIRouter()


class UploadResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    file_id: str
    original_name: str
    file_size: int
    viewer_url: str
    message: str = "File converted successfully"


@router.post("/upload", response_model=UploadResponse)
async def upload_cloud(
    pointcloud: UploadFile = File(...),
    user: AuthenticatedUser = Depends(get_current_user),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """
    Upload a .las/.laz file, convert it and publish it as a new project.

    Responds once the converter has finished. Converter failures return 500
    with the converter's stderr in ``errors``.
    """
    try:
        descriptor = await pipeline.ingest(
            pointcloud,
            pointcloud.filename,
            user.owner_id,
            declared_size=pointcloud.size,
        )
    except PipelineError as e:
        logger.info(f"Upload of {pointcloud.filename} by {user.user_id} failed: {e}")
        raise pipeline_error_response(e)
    finally:
        await pointcloud.close()

    return UploadResponse(
        file_id=descriptor.id,
        original_name=descriptor.original_name,
        file_size=descriptor.byte_size,
        viewer_url=descriptor.viewer_url,
    )


@router.get("", response_model=list[ProjectDescriptor])
async def list_clouds(
    user: AuthenticatedUser = Depends(get_current_user),
    store: ArtifactStore = Depends(get_artifact_store),
):
    """The caller's published projects, newest first."""
    return await asyncio.to_thread(store.list_for_owner, user.owner_id)


@router.delete("/{project_id}")
async def delete_cloud(
    project_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    workflow: DeletionWorkflow = Depends(get_deletion_workflow),
):
    try:
        result = await workflow.delete_project(
            project_id, requester_id=user.owner_id, is_admin=user.is_admin
        )
    except PipelineError as e:
        raise pipeline_error_response(e)

    return success_response(
        message="Cloud deleted",
        data={"projectId": result.project_id, "accounted": result.accounted},
    )
