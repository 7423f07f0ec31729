"""yt-dlp command-line extractor adapter."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from pathlib import Path

from reelfetch.adapters.extractors.artifacts import build_media_artifact, locate_output_files, read_metadata
from reelfetch.adapters.extractors.base import ExtractionError, ExtractionResult, OutputHandler, PostExtractor
from reelfetch.core.logging_safety import safe_log_identifier, tail_text

logger = logging.getLogger(__name__)

_OUTPUT_TEMPLATE = "%(title)s.%(ext)s"


class YtDlpExtractor(PostExtractor):
    """Primary extractor: drives the yt-dlp binary and reads its sidecar files."""

    name = "yt-dlp"
    directory_prefix = "ytdlp"

    def __init__(
        self,
        *,
        output_root: Path,
        command: Sequence[str] = ("yt-dlp",),
        timeout_seconds: float = 45.0,
        video_format: str = "best[ext=mp4]",
        user_agent: str,
        referer: str,
    ) -> None:
        super().__init__(output_root=output_root, command=command, timeout_seconds=timeout_seconds)
        self._video_format = video_format
        self._user_agent = user_agent
        self._referer = referer

    def build_args(self, *, url: str, output_dir: Path) -> list[str]:
        return [
            "--output",
            str(output_dir / _OUTPUT_TEMPLATE),
            "--write-thumbnail",
            "--write-info-json",
            "--format",
            self._video_format,
            "--user-agent",
            self._user_agent,
            "--referer",
            self._referer,
            "--no-warnings",
            "--newline",
            "--",
            url,
        ]

    async def extract(
        self,
        *,
        url: str,
        job_id: str,
        on_output: OutputHandler | None = None,
    ) -> ExtractionResult:
        output_dir = self._create_output_dir()
        try:
            run = await self._run_tool(self.build_args(url=url, output_dir=output_dir), on_output)
            if run.returncode != 0:
                logger.info(
                    "ytdlp.exit_nonzero job_id=%s returncode=%s stderr=%s",
                    safe_log_identifier(job_id, prefix="jid"),
                    run.returncode,
                    tail_text(run.stderr),
                )
                raise self._failure("Download failed")

            files = locate_output_files(output_dir)
            if files.video is None:
                raise self._failure("No video file found")
            if files.video.stat().st_size == 0:
                raise self._failure("Downloaded video file is empty")

            artifact = build_media_artifact(
                video=files.video,
                thumbnail=files.thumbnail,
                metadata=read_metadata(files.metadata),
            )
        except ExtractionError:
            self._discard_output_dir(output_dir)
            raise
        except Exception as exc:
            self._discard_output_dir(output_dir)
            raise self._failure("Processing failed") from exc

        return ExtractionResult(artifact=artifact, output_dir=output_dir)


__all__ = ["YtDlpExtractor"]
