from viizor.tasks import accounting  # noqa: F401
from viizor.tasks import artifacts  # noqa: F401

__all__ = [
    "accounting",
    "artifacts",
]
