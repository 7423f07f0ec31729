"""Post link validation."""

import re

from reelfetch.errors import InvalidPostUrlError

_POST_PATH_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"/p/([A-Za-z0-9_-]+)"),
    re.compile(r"/reel/([A-Za-z0-9_-]+)"),
    re.compile(r"/reels/([A-Za-z0-9_-]+)"),
)


def extract_post_id(url: str) -> str:
    """Return the post shortcode captured by the first matching path shape."""
    for pattern in _POST_PATH_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)

    raise InvalidPostUrlError("Invalid Instagram URL format")
