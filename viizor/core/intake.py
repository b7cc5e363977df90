"""
Upload intake - validates an incoming point-cloud upload and stages it in
the scratch area for conversion.
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Protocol

from viizor.core.errors import ValidationError
from viizor.models.pydantic_models.project import StagingHandle

logger = logging.getLogger(__name__)


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


class UploadIntake:
    def __init__(
        self,
        staging_dir: Path | str,
        max_bytes: int,
        allowed_extensions: tuple[str, ...] = (".las", ".laz"),
        chunk_size: int = 1024 * 1024,
    ):
        self.staging_dir = Path(staging_dir)
        self.max_bytes = max_bytes
        self.allowed_extensions = tuple(ext.lower() for ext in allowed_extensions)
        self.chunk_size = chunk_size

    def validate_name(self, original_name: str | None) -> str:
        """Return the normalised extension or raise ValidationError."""
        if not original_name:
            raise ValidationError("No file was uploaded")

        extension = Path(original_name).suffix.lower()
        if extension not in self.allowed_extensions:
            allowed = ", ".join(self.allowed_extensions)
            raise ValidationError(f"Only {allowed} files are allowed")
        return extension

    async def stage(
        self,
        stream: AsyncReadable,
        original_name: str | None,
        owner_id: str,
        declared_size: int | None = None,
    ) -> StagingHandle:
        """
        Copy ``stream`` into the scratch area under a random name.

        The extension and the declared size are checked before anything is
        written; the running size is checked while copying and any partial
        file is removed if the upload is rejected or the copy fails.
        """
        if not owner_id:
            raise ValidationError("Owner is required")

        extension = self.validate_name(original_name)
        if declared_size is not None and declared_size > self.max_bytes:
            raise ValidationError(
                f"File exceeds the maximum upload size of {self.max_bytes} bytes"
            )

        await asyncio.to_thread(self.staging_dir.mkdir, parents=True, exist_ok=True)
        staged_path = self.staging_dir / f"{uuid.uuid4().hex}{extension}"

        written = 0
        # Opened inline so a cancellation cannot leave an unowned empty file.
        fh = open(staged_path, "wb")
        try:
            while True:
                chunk = await stream.read(self.chunk_size)
                if not chunk:
                    break
                written += len(chunk)
                if written > self.max_bytes:
                    raise ValidationError(
                        f"File exceeds the maximum upload size of {self.max_bytes} bytes"
                    )
                await asyncio.to_thread(fh.write, chunk)
        except BaseException:
            fh.close()
            staged_path.unlink(missing_ok=True)
            logger.info(f"Discarded partial upload {staged_path.name} ({original_name})")
            raise
        else:
            await asyncio.to_thread(fh.close)

        logger.info(
            f"Staged {original_name} for owner {owner_id} as {staged_path.name} ({written} bytes)"
        )
        return StagingHandle(
            path=staged_path,
            original_name=original_name,
            byte_size=written,
            owner_id=owner_id,
        )
