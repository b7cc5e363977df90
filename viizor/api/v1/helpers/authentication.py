"""
Bearer-token authentication against the identity provider.

The identity provider issues HS256 JWTs whose ``sub`` is the user id and
owns the ``users`` table; this module only validates the token and loads
the user record. ``create_access_token`` mints compatible tokens for
operators and tests.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Request
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from viizor.api.v1.helpers.responses import forbidden_response, unauthorized_response
from viizor.config import settings
from viizor.db.session import get_db
from viizor.models.iam.users import User
from viizor.models.pydantic_models.core_models import CoreUserModel

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24


class AuthenticatedUser:
    """Container for the authenticated caller."""

    def __init__(self, user: CoreUserModel):
        self.user = user
        self.user_id = user.user_id
        self.email = user.email
        self.plan = user.plan

    @property
    def owner_id(self) -> str:
        """The id stamped on this user's project descriptors."""
        return str(self.user_id)

    @property
    def is_admin(self) -> bool:
        return self.plan == "admin"


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


async def validate_jwt_token(jwt_token: str, db: AsyncSession) -> CoreUserModel:
    try:
        payload = jwt.decode(jwt_token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        raise unauthorized_response("Invalid token")

    subject = payload.get("sub")
    if subject is None:
        raise unauthorized_response("No user id found in token")
    try:
        user_id = uuid.UUID(str(subject))
    except ValueError:
        raise unauthorized_response("Invalid token")

    result = await db.execute(select(User).filter(User.user_id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise unauthorized_response("Invalid or inactive user")

    return CoreUserModel.model_validate(user)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthenticatedUser:
    auth_header: str | None = request.headers.get("Authorization")
    if not auth_header or not auth_header.lower().startswith("bearer "):
        raise unauthorized_response("Token required")

    user_model = await validate_jwt_token(auth_header[7:], db)
    return AuthenticatedUser(user=user_model)


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    if not user.is_admin:
        logger.info(f"Rejected admin request from user {user.user_id}")
        raise forbidden_response("Admin access required")
    return user
