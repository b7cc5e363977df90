"""
Prevents overlapping runs of periodic Celery tasks using Valkey locks.
"""

import logging
from contextlib import contextmanager
from functools import wraps
from typing import Any
from collections.abc import Callable
from valkey import Valkey

from viizor.config import settings

logger = logging.getLogger(__name__)

# Released when the task finishes; expires on its own if a worker dies.
LOCK_TIMEOUT_SECONDS = 6 * 60 * 60


def get_valkey_client() -> Valkey:
    return Valkey(
        host=settings.valkey_host,
        port=settings.valkey_port,
        db=settings.valkey_db,
        password=settings.valkey_auth_token if settings.valkey_auth_token else None,
        ssl=True if settings.valkey_auth_token else False,
        decode_responses=False,
    )


@contextmanager
def acquire_task_lock(lock_name: str, blocking: bool = False):
    """
    Context manager yielding True if the lock ``celery:lock:<lock_name>`` was
    acquired and False if another run holds it.

    Example:
        with acquire_task_lock("accounting.resync_all") as acquired:
            if not acquired:
                return
            ...
    """
    valkey_client = get_valkey_client()
    lock = valkey_client.lock(
        f"celery:lock:{lock_name}",
        timeout=LOCK_TIMEOUT_SECONDS,
        blocking_timeout=0,
    )

    acquired = False
    try:
        acquired = lock.acquire(blocking=blocking)
        if acquired:
            logger.info(f"Acquired lock for task: {lock_name}")
        else:
            logger.info(f"Could not acquire lock for task: {lock_name} (task already running)")
        yield acquired
    finally:
        if acquired:
            try:
                lock.release()
                logger.info(f"Released lock for task: {lock_name}")
            except Exception as e:
                logger.warning(f"Error releasing lock for task {lock_name}: {e}")


def with_task_lock(lock_name: str | None = None, blocking: bool = False):
    """
    Decorator for Celery tasks so only one instance runs at a time.

    A run that finds the lock taken returns a ``{"status": "skipped"}`` dict
    instead of executing.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            task_lock_name = lock_name or func.__name__

            with acquire_task_lock(task_lock_name, blocking=blocking) as acquired:
                if not acquired:
                    return {
                        "status": "skipped",
                        "reason": "previous_task_still_running",
                        "message": f"Task {task_lock_name} is already running, skipped this execution",
                    }
                return func(*args, **kwargs)

        return wrapper

    return decorator
