"""Extraction adapter interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
import logging
from pathlib import Path
import secrets
import shutil

from reelfetch.schemas.job import MediaArtifact

logger = logging.getLogger(__name__)

OutputHandler = Callable[[str], None]

_STREAM_LIMIT_BYTES = 1024 * 1024
_REAP_TIMEOUT_SECONDS = 5.0


class ExtractionError(Exception):
    """Raised when a single extraction attempt cannot produce a media file."""

    def __init__(self, extractor: str, message: str) -> None:
        self.extractor = extractor
        super().__init__(message)


@dataclass(slots=True)
class ExtractionResult:
    artifact: MediaArtifact
    output_dir: Path


@dataclass(slots=True)
class ToolRun:
    returncode: int
    stdout_lines: list[str]
    stderr: bytes


class PostExtractor(ABC):
    """Provider-neutral extraction interface: post link in, media artifact out."""

    name: str = "extractor"
    directory_prefix: str = "extract"

    def __init__(self, *, output_root: Path, command: Sequence[str], timeout_seconds: float) -> None:
        self._output_root = output_root
        self._command = list(command)
        self._timeout_seconds = timeout_seconds

    @abstractmethod
    async def extract(
        self,
        *,
        url: str,
        job_id: str,
        on_output: OutputHandler | None = None,
    ) -> ExtractionResult:
        """Download the post media and describe the produced artifact."""

    def _create_output_dir(self) -> Path:
        output_dir = self._output_root / f"{self.directory_prefix}_{secrets.token_hex(8)}"
        try:
            output_dir.mkdir(parents=True, exist_ok=False)
        except OSError as exc:
            raise self._failure("Could not create output directory") from exc
        return output_dir

    def _discard_output_dir(self, output_dir: Path) -> None:
        try:
            shutil.rmtree(output_dir)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning(
                "extractor.cleanup_failed extractor=%s dir=%s reason=%s",
                self.name,
                output_dir.name,
                type(exc).__name__,
            )

    def _failure(self, message: str) -> ExtractionError:
        return ExtractionError(self.name, message)

    async def _run_tool(self, args: Sequence[str], on_output: OutputHandler | None = None) -> ToolRun:
        """Run the tool under the configured timeout, streaming stdout lines."""
        argv = [*self._command, *args]
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT_BYTES,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise self._failure(f"{self.name} not available") from exc

        stdout_lines: list[str] = []

        async def pump_stdout() -> None:
            assert process.stdout is not None
            async for raw_line in process.stdout:
                line = raw_line.decode("utf-8", errors="replace").rstrip("\r\n")
                stdout_lines.append(line)
                if on_output is not None:
                    on_output(line)

        async def drain() -> bytes:
            assert process.stderr is not None
            stderr_task = asyncio.ensure_future(process.stderr.read())
            try:
                await pump_stdout()
                stderr = await stderr_task
                await process.wait()
            except BaseException:
                # The reader must be gone before _terminate() drains the pipes.
                stderr_task.cancel()
                await asyncio.gather(stderr_task, return_exceptions=True)
                raise
            return stderr

        try:
            stderr = await asyncio.wait_for(drain(), timeout=self._timeout_seconds)
        except asyncio.TimeoutError as exc:
            await self._terminate(process)
            raise self._failure(f"{self.name} timed out after {self._timeout_seconds:g}s") from exc
        except Exception as exc:
            await self._terminate(process)
            logger.warning(
                "extractor.output_unreadable extractor=%s reason=%s",
                self.name,
                type(exc).__name__,
            )
            raise self._failure(f"{self.name} output could not be read") from exc

        return ToolRun(returncode=process.returncode, stdout_lines=stdout_lines, stderr=stderr)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        try:
            await asyncio.wait_for(process.communicate(), timeout=_REAP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("extractor.reap_timeout extractor=%s pid=%s", self.name, process.pid)


__all__ = [
    "ExtractionError",
    "ExtractionResult",
    "OutputHandler",
    "PostExtractor",
    "ToolRun",
]
