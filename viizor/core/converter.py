"""
Conversion orchestrator - runs the external point-cloud converter against a
staged upload and produces the converted artifact tree inside a fresh
project directory.

The converter is an opaque program invoked as::

    <converter> <input-file> -o <output-dir> --overwrite

Arguments are passed as a discrete argv list, never through a shell.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from opentelemetry import trace

from viizor.core.artifact_store import ArtifactStore
from viizor.core.errors import ConversionError
from viizor.models.pydantic_models.project import StagingHandle

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class ConversionResult:
    project_id: str
    output_dir: Path
    stdout: str


class ConversionOrchestrator:
    def __init__(
        self,
        store: ArtifactStore,
        converter_path: str | Path,
        timeout_seconds: float | None = None,
        remove_failed: bool = True,
        heartbeat_seconds: float = 30.0,
    ):
        self.store = store
        self.converter_path = str(converter_path)
        self.timeout_seconds = timeout_seconds
        self.remove_failed = remove_failed
        self.heartbeat_seconds = heartbeat_seconds

    def build_command(self, input_path: Path, output_dir: Path) -> list[str]:
        return [
            self.converter_path,
            str(input_path),
            "-o",
            str(output_dir),
            "--overwrite",
        ]

    async def convert(self, handle: StagingHandle) -> ConversionResult:
        """
        Convert ``handle`` into a new project directory.

        Returns once the converter has exited successfully, or raises
        ConversionError with the converter's stderr. The staged input file
        is removed in every case.
        """
        project_id = uuid.uuid4().hex
        try:
            try:
                output_dir = await asyncio.to_thread(self._start_project, project_id)
            except OSError as e:
                raise ConversionError(
                    "Could not create the project directory", diagnostics=str(e)
                )
            logger.info(
                f"Converting {handle.original_name} ({handle.byte_size} bytes) into project {project_id}"
            )

            heartbeat = asyncio.create_task(self._heartbeat(project_id))
            with tracer.start_as_current_span("pointcloud.convert") as span:
                span.set_attribute("viizor.project_id", project_id)
                span.set_attribute("viizor.owner_id", handle.owner_id)
                span.set_attribute("viizor.byte_size", handle.byte_size)
                try:
                    stdout = await self._run(self.build_command(handle.path, output_dir))
                except ConversionError as e:
                    span.set_attribute("viizor.converter.returncode", e.returncode or -1)
                    heartbeat.cancel()
                    await self._discard_failed(project_id)
                    raise
                finally:
                    heartbeat.cancel()
        finally:
            await asyncio.to_thread(handle.path.unlink, missing_ok=True)

        logger.info(f"Conversion finished for project {project_id}")
        return ConversionResult(project_id=project_id, output_dir=output_dir, stdout=stdout)

    async def _run(self, command: list[str]) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Could not start converter {command[0]}: {e}")
            raise ConversionError("Could not start the converter", diagnostics=str(e))

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            process.kill()
            _, stderr = await process.communicate()
            logger.error(f"Converter timed out after {self.timeout_seconds}s")
            raise ConversionError(
                f"Converter timed out after {self.timeout_seconds} seconds",
                diagnostics=stderr.decode("utf-8", errors="replace"),
                returncode=process.returncode,
            )

        if process.returncode != 0:
            diagnostics = stderr.decode("utf-8", errors="replace")
            logger.error(
                f"Converter exited with code {process.returncode}: {diagnostics.strip()[:500]}"
            )
            raise ConversionError(
                "Error converting the file",
                diagnostics=diagnostics,
                returncode=process.returncode,
            )

        return stdout.decode("utf-8", errors="replace")

    def _start_project(self, project_id: str) -> Path:
        output_dir = self.store.create_project_dir(project_id)
        self.store.mark_in_progress(project_id)
        return output_dir

    async def _heartbeat(self, project_id: str) -> None:
        # Touched synchronously so a cancelled heartbeat never writes late.
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            try:
                self.store.mark_in_progress(project_id)
            except OSError as e:
                logger.warning(f"Heartbeat for project {project_id} stopped: {e}")
                return

    async def _discard_failed(self, project_id: str) -> None:
        # The orphan sweep catches anything left behind.
        if not self.remove_failed:
            try:
                await asyncio.to_thread(self.store.clear_in_progress, project_id)
            except OSError as e:
                logger.warning(f"Could not clear marker of failed project {project_id}: {e}")
            return
        try:
            await asyncio.to_thread(self.store.remove_project, project_id)
        except Exception as e:
            logger.warning(f"Could not remove failed project {project_id}: {e}")
