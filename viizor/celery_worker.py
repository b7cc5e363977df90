from viizor.celery_app import celery_app
from viizor.tasks import accounting, artifacts

__all__ = [
    "celery_app",
    "accounting",
    "artifacts",
]
