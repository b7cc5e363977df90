"""
Shared test fixtures for viizor.

Uses a per-test SQLite database (aiosqlite) with tables created from the
models, per-test artifact/staging directories under ``tmp_path``, and small
shell scripts standing in for the external converter.
"""

import io
import os
import stat
from pathlib import Path
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-tests")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from viizor.config import settings  # noqa: E402
from viizor.db.base import Base  # noqa: E402
from viizor.main import app  # noqa: E402
import viizor.models  # noqa: E402,F401


# ---------------------------------------------------------------------------
# Converter stand-ins
# ---------------------------------------------------------------------------

SUCCEEDING_CONVERTER = """#!/bin/sh
# usage: converter <input> -o <outdir> --overwrite
test -f "$1" || { echo "input missing: $1" >&2; exit 3; }
[ "$2" = "-o" ] || { echo "expected -o, got $2" >&2; exit 4; }
[ "$4" = "--overwrite" ] || { echo "expected --overwrite, got $4" >&2; exit 5; }
echo '{"version": "2.0", "points": 1}' > "$3/metadata.json"
: > "$3/octree.bin"
: > "$3/hierarchy.bin"
echo "converted $1"
exit 0
"""

FAILING_CONVERTER = """#!/bin/sh
echo "ERROR: unsupported LAS point format" >&2
exit 2
"""


def write_script(path: Path, body: str) -> Path:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture()
def script_writer():
    return write_script


@pytest.fixture()
def converter(tmp_path) -> Path:
    (tmp_path / "bin").mkdir(exist_ok=True)
    return write_script(tmp_path / "bin" / "converter", SUCCEEDING_CONVERTER)


@pytest.fixture()
def failing_converter(tmp_path) -> Path:
    (tmp_path / "bin").mkdir(exist_ok=True)
    return write_script(tmp_path / "bin" / "failing-converter", FAILING_CONVERTER)


class ByteStream:
    """Minimal async stream with the ``read`` signature of UploadFile."""

    def __init__(self, data: bytes):
        self._buf = io.BytesIO(data)

    async def read(self, size: int = -1) -> bytes:
        return self._buf.read(size)


@pytest.fixture()
def byte_stream():
    return ByteStream


# ---------------------------------------------------------------------------
# Store / settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def data_dirs(tmp_path, monkeypatch, converter):
    """Point every settings path at tmp_path for the duration of a test."""
    artifact_dir = tmp_path / "data" / "converted"
    staging_dir = tmp_path / "data" / "uploads"
    monkeypatch.setattr(settings, "artifact_dir", artifact_dir)
    monkeypatch.setattr(settings, "staging_dir", staging_dir)
    monkeypatch.setattr(settings, "converter_path", str(converter))
    return artifact_dir, staging_dir


@pytest.fixture()
def store(data_dirs):
    from viizor.core.artifact_store import ArtifactStore

    artifact_dir, _ = data_dirs
    return ArtifactStore(artifact_dir, public_prefix=settings.public_prefix)


@pytest.fixture()
def staging_dir(data_dirs) -> Path:
    return data_dirs[1]


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def reconciler(session_factory, store):
    from viizor.core.accounting import AccountingReconciler

    return AccountingReconciler(session_factory, store)


@pytest_asyncio.fixture(scope="function")
async def user_factory(session_factory):
    from viizor.models.iam.users import User

    async def _create(
        email: str | None = None,
        plan: str = "trial",
        projects_count: int = 0,
        storage_used_bytes: int = 0,
        is_active: bool = True,
    ) -> User:
        user = User(
            email=email or f"user+{uuid4().hex[:6]}@example.com",
            full_name="Test User",
            plan=plan,
            is_active=is_active,
            projects_count=projects_count,
            storage_used_bytes=storage_used_bytes,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _create


@pytest_asyncio.fixture(scope="function")
async def fetch_user(session_factory):
    """Read a user's current row in a fresh session."""
    from viizor.models.iam.users import User

    async def _fetch(user_id) -> User:
        async with session_factory() as session:
            result = await session.execute(select(User).where(User.user_id == user_id))
            return result.scalar_one()

    return _fetch


# ---------------------------------------------------------------------------
# Descriptor seeding
# ---------------------------------------------------------------------------


@pytest.fixture()
def project_factory(store):
    """Publish a project directly in the store, bypassing the converter."""
    from datetime import datetime, timezone

    from viizor.models.pydantic_models.project import ProjectDescriptor

    def _create(
        owner_id: str,
        byte_size: int = 1024,
        original_name: str = "scan.las",
        uploaded_at: datetime | None = None,
    ) -> ProjectDescriptor:
        project_id = uuid4().hex
        store.create_project_dir(project_id)
        descriptor = ProjectDescriptor(
            id=project_id,
            owner_id=str(owner_id),
            original_name=original_name,
            byte_size=byte_size,
            uploaded_at=uploaded_at or datetime.now(timezone.utc),
            viewer_url=store.viewer_url(project_id),
            artifact_root_url=store.artifact_root_url(project_id),
        )
        store.write_descriptor(descriptor)
        return descriptor

    return _create


# ---------------------------------------------------------------------------
# Test client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="function")
async def test_client(session_factory):
    from viizor.api.v1.deps import get_session_factory
    from viizor.db.session import get_db

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers_for():
    """Bearer headers for a user, as the identity provider would issue them."""
    from viizor.api.v1.helpers.authentication import create_access_token

    def _headers(user) -> dict[str, str]:
        token = create_access_token({"sub": str(user.user_id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture(scope="function")
async def owner(user_factory):
    return await user_factory(email="owner@example.com")


@pytest_asyncio.fixture(scope="function")
async def admin(user_factory):
    return await user_factory(email="admin@example.com", plan="admin")
