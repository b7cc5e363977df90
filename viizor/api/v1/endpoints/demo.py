"""
Demo pointer endpoints. Reading is public; publishing requires an admin.
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from viizor.api.v1.deps import get_demo_service
from viizor.api.v1.helpers.authentication import AuthenticatedUser, require_admin
from viizor.api.v1.helpers.responses import pipeline_error_response
from viizor.core.demo import DemoPointerService
from viizor.core.errors import PipelineError
from viizor.models.pydantic_models.project import DemoPointer

router = APIRouter()


class DemoInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    has_demo: bool
    project_id: str | None = None
    display_name: str | None = None
    set_at: datetime | None = None


class SetDemoRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_id: str
    display_name: str


@router.get("", response_model=DemoInfo)
async def get_demo(service: DemoPointerService = Depends(get_demo_service)):
    """Return the published demo project, which may since have been deleted."""
    pointer = await service.get_demo()
    if pointer is None:
        return DemoInfo(has_demo=False)
    return DemoInfo(has_demo=True, **pointer.model_dump())


@router.post("", response_model=DemoPointer)
async def set_demo(
    data: SetDemoRequest,
    _: AuthenticatedUser = Depends(require_admin),
    service: DemoPointerService = Depends(get_demo_service),
):
    try:
        return await service.set_demo(data.project_id, data.display_name)
    except PipelineError as e:
        raise pipeline_error_response(e)
