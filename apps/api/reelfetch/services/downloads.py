"""Download job orchestration."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from urllib.parse import quote

from reelfetch.adapters.extractors import ExtractionError, PostExtractor
from reelfetch.core.logging_safety import safe_log_identifier
from reelfetch.domain.job_fsm import is_terminal
from reelfetch.domain.post_urls import extract_post_id
from reelfetch.domain.progress import clamp_progress, parse_download_percent
from reelfetch.errors import ApiError, InvalidPostUrlError
from reelfetch.repositories.memory import InMemoryProgressStore, JobRecord
from reelfetch.schemas.job import Alternative, DownloadStatus, ProgressSnapshot
from reelfetch.services.retention import RetentionSweeper

logger = logging.getLogger(__name__)

_PROCESSING_PROGRESS = 10
_FALLBACK_PROGRESS = 50

# Characters JavaScript's encodeURIComponent leaves untouched beyond quote()'s defaults.
_URI_COMPONENT_SAFE = "!*'()"


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def fallback_alternatives(url: str) -> list[Alternative]:
    """Externally hosted services suggested when every extractor failed."""
    encoded = encode_uri_component(url)
    return [
        Alternative(
            name="SaveInsta",
            url=f"https://saveinsta.app/download?url={encoded}",
            description="Professional Instagram downloader",
        ),
        Alternative(
            name="SnapInsta",
            url=f"https://snapinsta.app/?url={encoded}",
            description="Fast and reliable downloads",
        ),
    ]


class DownloadService:
    def __init__(
        self,
        store: InMemoryProgressStore,
        extractors: Sequence[PostExtractor],
        sweeper: RetentionSweeper,
    ) -> None:
        self._store = store
        self._extractors = list(extractors)
        self._sweeper = sweeper

    def submit(self, url: str) -> str:
        """Validate a post link and register a new job; returns the job id."""
        if not url:
            raise ApiError(status_code=400, message="Valid Instagram URL is required", success=False)
        try:
            extract_post_id(url)
        except InvalidPostUrlError as exc:
            logger.info("download.rejected url=%s reason=invalid_url", safe_log_identifier(url, prefix="url"))
            raise ApiError(status_code=400, message=str(exc), success=False) from exc

        job = self._store.create_job()
        logger.info(
            "download.accepted job_id=%s url=%s",
            safe_log_identifier(job.id, prefix="jid"),
            safe_log_identifier(url, prefix="url"),
        )
        return job.id

    def get_progress(self, job_id: str) -> ProgressSnapshot:
        return self._store.snapshot(job_id)

    async def run_job(self, job_id: str, url: str) -> None:
        """Drive one job through the extractor chain; outcomes land in the store."""
        job = self._store.get_job(job_id)
        if job is None:
            return

        safe_job_id = safe_log_identifier(job_id, prefix="jid")
        try:
            self._advance(job, progress=_PROCESSING_PROGRESS, message="Processing request...")

            for index, extractor in enumerate(self._extractors):
                if index > 0:
                    self._advance(job, progress=_FALLBACK_PROGRESS, message="Trying alternative method...")
                try:
                    result = await extractor.extract(
                        url=url,
                        job_id=job_id,
                        on_output=lambda line: self._publish_tool_progress(job, line),
                    )
                except ExtractionError as exc:
                    logger.warning(
                        "download.extractor_failed job_id=%s extractor=%s reason=%s",
                        safe_job_id,
                        exc.extractor,
                        exc,
                    )
                    continue
                except Exception:
                    logger.exception(
                        "download.extractor_crashed job_id=%s extractor=%s",
                        safe_job_id,
                        extractor.name,
                    )
                    continue

                self._sweeper.schedule(result.output_dir)
                self._store.transition_job_status(
                    job=job,
                    new_status=DownloadStatus.COMPLETED,
                    progress=100,
                    message="Download completed!",
                    data=result.artifact,
                )
                logger.info("download.completed job_id=%s extractor=%s", safe_job_id, extractor.name)
                return

            self._store.transition_job_status(
                job=job,
                new_status=DownloadStatus.FAILED,
                progress=100,
                message="Direct download failed",
                alternatives=fallback_alternatives(url),
            )
            logger.warning("download.failed job_id=%s extractors=%s", safe_job_id, len(self._extractors))
        except Exception as exc:
            logger.exception("download.error job_id=%s", safe_job_id)
            if is_terminal(job.status):
                return
            self._store.transition_job_status(
                job=job,
                new_status=DownloadStatus.ERROR,
                progress=100,
                message="Processing error occurred",
                error=str(exc),
            )

    def _advance(self, job: JobRecord, *, progress: int, message: str) -> None:
        self._store.transition_job_status(
            job=job,
            new_status=DownloadStatus.DOWNLOADING,
            progress=progress,
            message=message,
        )

    def _publish_tool_progress(self, job: JobRecord, line: str) -> None:
        percent = parse_download_percent(line)
        if percent is None:
            return
        self._advance(job, progress=clamp_progress(percent), message=f"Downloading... {percent}%")
