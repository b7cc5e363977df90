"""
Pydantic models returned by the user-facing endpoints.
"""

from datetime import datetime
import uuid

from pydantic import BaseModel, ConfigDict


class CoreUserModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    email: str
    full_name: str | None = None
    plan: str
    is_active: bool
    projects_count: int
    storage_used_bytes: int
    storage_limit_bytes: int
    created_at: datetime | None = None


class StorageSummary(BaseModel):
    used: int
    limit: int
    percentage: int
