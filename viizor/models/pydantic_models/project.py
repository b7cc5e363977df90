"""
Pydantic models for the on-disk records of the artifact store.

Both records are persisted as JSON with camelCase keys; Python code uses
the snake_case attribute names.
"""

from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ProjectDescriptor(BaseModel):
    """
    The durable record that makes a converted project visible.

    ``viewer_url`` and ``artifact_root_url`` are derived from ``id`` and are
    kept only for the convenience of clients.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    owner_id: str
    original_name: str
    byte_size: int = Field(ge=0)
    uploaded_at: datetime
    viewer_url: str
    artifact_root_url: str

    @field_validator("uploaded_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # Older descriptors were written without an offset
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class DemoPointer(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_id: str
    display_name: str
    set_at: datetime


class StagingHandle(BaseModel):
    """An uploaded file sitting in the scratch area, waiting for conversion."""

    path: Path
    original_name: str
    byte_size: int
    owner_id: str
