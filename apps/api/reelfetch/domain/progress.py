"""Progress parsing for extraction tool output."""

import re

_PERCENT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)%")
_TRANSFER_MARKER = "[download]"

PROGRESS_FLOOR = 20
PROGRESS_CEILING = 95


def parse_download_percent(line: str) -> int | None:
    """Return the capped transfer percentage reported on a tool output line.

    Only lines that mark an active transfer count. The value is truncated to an
    integer and capped at ``PROGRESS_CEILING``.
    """
    if _TRANSFER_MARKER not in line or "%" not in line:
        return None

    match = _PERCENT_PATTERN.search(line)
    if match is None:
        return None

    return min(PROGRESS_CEILING, int(float(match.group(1))))


def clamp_progress(percent: int) -> int:
    return max(PROGRESS_FLOOR, min(PROGRESS_CEILING, percent))
