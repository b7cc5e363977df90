"""
User model.

The identity provider owns this table; the ingestion pipeline only reads
the user record and maintains the two aggregate counters
(``projects_count`` and ``storage_used_bytes``).
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.sql import func
from viizor.config import settings
from viizor.db.base import Base
from .enums import Plan
import uuid


class User(Base):
    __tablename__ = "users"

    user_id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        unique=True,
        index=True,
        nullable=False,
        default=uuid.uuid4,
    )
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    plan = Column(String, nullable=False, default=Plan.TRIAL.value)

    # Aggregates kept in step with the artifact store
    projects_count = Column(Integer, nullable=False, default=0, server_default="0")
    storage_used_bytes = Column(
        BigInteger, nullable=False, default=0, server_default="0"
    )
    storage_limit_bytes = Column(
        BigInteger, nullable=False, default=settings.default_storage_limit_bytes
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_admin(self) -> bool:
        return self.plan == Plan.ADMIN.value

    __table_args__ = (
        CheckConstraint(
            plan.in_([e.value for e in Plan]),
            name="ck_user_plan",
        ),
        CheckConstraint("projects_count >= 0", name="ck_user_projects_count"),
        CheckConstraint("storage_used_bytes >= 0", name="ck_user_storage_used"),
    )
