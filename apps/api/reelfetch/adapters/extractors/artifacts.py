"""Media artifact assembly from an extractor's output directory."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote

from reelfetch.schemas.job import MediaArtifact

logger = logging.getLogger(__name__)

VIDEO_SUFFIX = ".mp4"
THUMBNAIL_SUFFIXES = (".jpg", ".webp")
METADATA_SUFFIX = ".info.json"
DEFAULT_TITLE = "Instagram Reel"
DEFAULT_UPLOADER = "Unknown"
DEFAULT_QUALITY = "HD"


@dataclass(slots=True)
class OutputFiles:
    video: Path | None
    thumbnail: Path | None
    metadata: Path | None


def locate_output_files(output_dir: Path) -> OutputFiles:
    names = sorted(entry.name for entry in output_dir.iterdir() if entry.is_file())
    video = next((name for name in names if name.endswith(VIDEO_SUFFIX)), None)
    thumbnail = next((name for name in names if name.endswith(THUMBNAIL_SUFFIXES)), None)
    metadata = next((name for name in names if name.endswith(METADATA_SUFFIX)), None)
    return OutputFiles(
        video=output_dir / video if video else None,
        thumbnail=output_dir / thumbnail if thumbnail else None,
        metadata=output_dir / metadata if metadata else None,
    )


def read_metadata(path: Path | None) -> dict[str, Any]:
    """Load a tool's metadata sidecar; unreadable sidecars yield no metadata."""
    if path is None:
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("artifact.metadata_ignored file=%s reason=%s", path.name, type(exc).__name__)
        return {}
    return payload if isinstance(payload, dict) else {}


def download_url(path: Path) -> str:
    return f"/download/{quote(path.name, safe='')}?dir={quote(path.parent.name, safe='')}"


def format_megabytes(size_bytes: int) -> str:
    value = round(size_bytes / 1024 / 1024, 2)
    return f"{value:.2f}".rstrip("0").rstrip(".") + " MB"


def quality_label(height: Any) -> str:
    if isinstance(height, (int, float)) and not isinstance(height, bool) and height > 0:
        return f"{int(height)}p"
    return DEFAULT_QUALITY


def build_media_artifact(
    *,
    video: Path,
    thumbnail: Path | None,
    metadata: dict[str, Any],
) -> MediaArtifact:
    """Describe a produced video; the caller has already checked it is non-empty."""
    size_bytes = video.stat().st_size
    extra: dict[str, Any] = {}
    duration = metadata.get("duration")
    if isinstance(duration, (int, float)) and not isinstance(duration, bool):
        extra["duration"] = duration
    return MediaArtifact(
        video_url=download_url(video),
        thumbnail_url=download_url(thumbnail) if thumbnail is not None else None,
        title=str(metadata.get("title") or metadata.get("description") or DEFAULT_TITLE),
        uploader=str(metadata.get("uploader") or metadata.get("channel") or DEFAULT_UPLOADER),
        quality=quality_label(metadata.get("height")),
        file_size=format_megabytes(size_bytes),
        **extra,
    )
