"""Shared fixtures for Celery task tests."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest


@pytest.fixture()
def patch_task_session(session_factory):
    """Patch ``get_session_local`` and ``dispose_engine`` in a task module.

    Returns the two patchers so a test can enter them in one ``with``.
    """

    def _patch(module_path: str):
        return (
            patch(f"{module_path}.get_session_local", return_value=session_factory),
            patch(f"{module_path}.dispose_engine", new_callable=AsyncMock),
        )

    return _patch


@pytest.fixture()
def mock_lock():
    lock = MagicMock()
    lock.acquire.return_value = True
    return lock


@pytest.fixture()
def mock_valkey_client(mock_lock):
    client = MagicMock()
    client.lock.return_value = mock_lock
    return client


@pytest.fixture(autouse=True)
def patch_valkey(monkeypatch, mock_valkey_client):
    """No task test talks to a real Valkey."""
    monkeypatch.setattr(
        "viizor.tasks.task_lock.get_valkey_client",
        lambda: mock_valkey_client,
    )
