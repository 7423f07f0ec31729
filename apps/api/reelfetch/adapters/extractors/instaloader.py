"""Instaloader extractor adapter.

The instaloader library runs in a child interpreter. The child script is a
constant; the shortcode and target directory travel as argv data.
"""

from __future__ import annotations

from collections.abc import Sequence
import json
import logging
from pathlib import Path
from typing import Any

from reelfetch.adapters.extractors.artifacts import build_media_artifact, locate_output_files
from reelfetch.adapters.extractors.base import ExtractionError, ExtractionResult, OutputHandler, PostExtractor
from reelfetch.core.logging_safety import safe_log_identifier, tail_text
from reelfetch.domain.post_urls import extract_post_id
from reelfetch.errors import InvalidPostUrlError

logger = logging.getLogger(__name__)

INSTALOADER_SCRIPT = """
import json
import os
import sys

shortcode, output_dir = sys.argv[1], sys.argv[2]
try:
    import instaloader

    loader = instaloader.Instaloader(
        dirname_pattern=output_dir,
        filename_pattern="{shortcode}",
        download_comments=False,
        download_geotags=False,
        save_metadata=False,
        post_metadata_txt_pattern="",
        quiet=True,
    )
    post = instaloader.Post.from_shortcode(loader.context, shortcode)
    loader.download_post(post, target=output_dir)

    video = next((name for name in sorted(os.listdir(output_dir)) if name.endswith(".mp4")), None)
    if video is None:
        print(json.dumps({"success": False, "error": "No video found"}))
    else:
        print(json.dumps({
            "success": True,
            "video_path": os.path.join(output_dir, video),
            "title": post.caption[:100] if post.caption else "Instagram Reel",
            "uploader": post.owner_username,
        }))
except Exception as exc:
    print(json.dumps({"success": False, "error": str(exc)}))
"""


def parse_result_line(stdout_lines: Sequence[str]) -> dict[str, Any]:
    """Return the JSON object printed on the last non-empty stdout line."""
    for line in reversed(stdout_lines):
        if line.strip():
            payload = json.loads(line)
            if not isinstance(payload, dict):
                raise ValueError("Result line is not a JSON object")
            return payload
    raise ValueError("No result line")


class InstaloaderExtractor(PostExtractor):
    """Secondary extractor: runs instaloader in a child interpreter."""

    name = "instaloader"
    directory_prefix = "instaloader"

    def __init__(
        self,
        *,
        output_root: Path,
        command: Sequence[str],
        timeout_seconds: float = 30.0,
    ) -> None:
        super().__init__(output_root=output_root, command=command, timeout_seconds=timeout_seconds)

    def build_args(self, *, shortcode: str, output_dir: Path) -> list[str]:
        return ["-c", INSTALOADER_SCRIPT, shortcode, str(output_dir)]

    async def extract(
        self,
        *,
        url: str,
        job_id: str,
        on_output: OutputHandler | None = None,
    ) -> ExtractionResult:
        try:
            shortcode = extract_post_id(url)
        except InvalidPostUrlError as exc:
            raise self._failure(str(exc)) from exc

        output_dir = self._create_output_dir()
        try:
            run = await self._run_tool(self.build_args(shortcode=shortcode, output_dir=output_dir), on_output)
            try:
                result = parse_result_line(run.stdout_lines)
            except ValueError as exc:
                logger.info(
                    "instaloader.unparseable job_id=%s returncode=%s stderr=%s",
                    safe_log_identifier(job_id, prefix="jid"),
                    run.returncode,
                    tail_text(run.stderr),
                )
                raise self._failure("Failed to parse result") from exc

            if not result.get("success") or not result.get("video_path"):
                raise self._failure(str(result.get("error") or "Instaloader failed"))
            if run.returncode != 0:
                raise self._failure(f"Instaloader exited with status {run.returncode}")

            video = self._resolve_video(output_dir, str(result["video_path"]))
            files = locate_output_files(output_dir)
            artifact = build_media_artifact(
                video=video,
                thumbnail=files.thumbnail,
                metadata={"title": result.get("title"), "uploader": result.get("uploader")},
            )
        except ExtractionError:
            self._discard_output_dir(output_dir)
            raise
        except Exception as exc:
            self._discard_output_dir(output_dir)
            raise self._failure("Processing failed") from exc

        return ExtractionResult(artifact=artifact, output_dir=output_dir)

    def _resolve_video(self, output_dir: Path, reported_path: str) -> Path:
        video = Path(reported_path).resolve()
        if video.parent != output_dir.resolve():
            raise self._failure("Reported video is outside the output directory")
        if not video.is_file():
            raise self._failure("No video file found")
        if video.stat().st_size == 0:
            raise self._failure("Downloaded video file is empty")
        # Artifact URLs name the unresolved directory token.
        return output_dir / video.name


__all__ = ["INSTALOADER_SCRIPT", "InstaloaderExtractor", "parse_result_line"]
