"""Media file delivery with byte-range support."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import BinaryIO
from urllib.parse import quote

from reelfetch.errors import ApiError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
CACHE_CONTROL = "public, max-age=3600"

_CONTENT_TYPES: dict[str, str] = {
    ".mp4": "video/mp4",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}
_DEFAULT_CONTENT_TYPE = "application/octet-stream"
_RANGE_SUFFIXES = frozenset({".mp4"})


class RangeNotSatisfiable(Exception):
    pass


@dataclass(slots=True)
class ByteRange:
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass(slots=True)
class MediaStream:
    """A prepared response: status, headers and an open file to stream from."""

    status_code: int
    headers: dict[str, str]
    media_type: str
    body: Iterator[bytes]


def content_type_for(path: Path) -> str:
    return _CONTENT_TYPES.get(path.suffix.lower(), _DEFAULT_CONTENT_TYPE)


def content_disposition(filename: str, *, attachment: bool) -> str:
    disposition = "attachment" if attachment else "inline"
    quoted = quote(filename)
    if quoted != filename:
        return f"{disposition}; filename*=utf-8''{quoted}"
    return f'{disposition}; filename="{filename}"'


def parse_range_header(header: str, size: int) -> ByteRange:
    """Parse a single ``bytes=`` range against a file of ``size`` bytes.

    Supports ``start-end``, ``start-`` and ``-suffix``. The end is clamped to
    the last byte. Multi-range requests are not supported.
    """
    unit, _, ranges = header.strip().partition("=")
    if unit.strip().lower() != "bytes" or "," in ranges:
        raise RangeNotSatisfiable(header)

    start_text, sep, end_text = ranges.strip().partition("-")
    if not sep:
        raise RangeNotSatisfiable(header)
    start_text, end_text = start_text.strip(), end_text.strip()
    if not start_text.isdigit() and start_text:
        raise RangeNotSatisfiable(header)
    if not end_text.isdigit() and end_text:
        raise RangeNotSatisfiable(header)

    if not start_text:
        if not end_text:
            raise RangeNotSatisfiable(header)
        suffix = int(end_text)
        if suffix == 0 or size == 0:
            raise RangeNotSatisfiable(header)
        return ByteRange(start=max(0, size - suffix), end=size - 1)

    start = int(start_text)
    end = int(end_text) if end_text else size - 1
    end = min(end, size - 1)
    if start >= size or start > end:
        raise RangeNotSatisfiable(header)
    return ByteRange(start=start, end=end)


def iter_file(handle: BinaryIO, *, start: int, length: int) -> Iterator[bytes]:
    """Yield ``length`` bytes from ``start`` and close the handle afterwards."""
    try:
        handle.seek(start)
        remaining = length
        while remaining > 0:
            chunk = handle.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk
    except OSError as exc:
        logger.warning("delivery.stream_interrupted file=%s reason=%s", getattr(handle, "name", "?"), type(exc).__name__)
    finally:
        handle.close()


class MediaDeliveryService:
    def __init__(self, output_root: Path) -> None:
        self._output_root = output_root

    def resolve(self, *, filename: str | None, directory: str | None) -> Path:
        """Map request parameters to a file strictly inside the output root."""
        if not filename or not directory:
            raise ApiError(status_code=400, message="Missing parameters")

        root = self._output_root.resolve()
        try:
            candidate = (root / directory / filename).resolve()
        except (OSError, ValueError) as exc:
            raise ApiError(status_code=403, message="Access denied") from exc
        if candidate == root or not candidate.is_relative_to(root):
            logger.warning("delivery.rejected reason=path_outside_root")
            raise ApiError(status_code=403, message="Access denied")

        if not candidate.is_file():
            raise ApiError(status_code=404, message="File not found")
        return candidate

    def open_stream(
        self,
        *,
        filename: str | None,
        directory: str | None,
        headers: Mapping[str, str],
        attachment: bool = False,
    ) -> MediaStream:
        path = self.resolve(filename=filename, directory=directory)
        media_type = content_type_for(path)

        try:
            size = path.stat().st_size
            handle = path.open("rb")
        except OSError as exc:
            logger.error("delivery.open_failed file=%s reason=%s", path.name, type(exc).__name__)
            raise ApiError(status_code=500, message="Server error") from exc

        response_headers = {
            "Content-Length": str(size),
            "Accept-Ranges": "bytes",
            "Cache-Control": CACHE_CONTROL,
            "Content-Disposition": content_disposition(path.name, attachment=attachment),
        }

        range_header = headers.get("range")
        if range_header and path.suffix.lower() in _RANGE_SUFFIXES:
            try:
                byte_range = parse_range_header(range_header, size)
            except RangeNotSatisfiable:
                handle.close()
                return MediaStream(
                    status_code=416,
                    headers={"Content-Range": f"bytes */{size}", "Accept-Ranges": "bytes"},
                    media_type=media_type,
                    body=iter(()),
                )
            response_headers["Content-Range"] = f"bytes {byte_range.start}-{byte_range.end}/{size}"
            response_headers["Content-Length"] = str(byte_range.length)
            return MediaStream(
                status_code=206,
                headers=response_headers,
                media_type=media_type,
                body=iter_file(handle, start=byte_range.start, length=byte_range.length),
            )

        return MediaStream(
            status_code=200,
            headers=response_headers,
            media_type=media_type,
            body=iter_file(handle, start=0, length=size),
        )
