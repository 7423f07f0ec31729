"""Post media extractor adapters."""

from .base import ExtractionError, ExtractionResult, OutputHandler, PostExtractor
from .instaloader import InstaloaderExtractor
from .ytdlp import YtDlpExtractor

__all__ = [
    "ExtractionError",
    "ExtractionResult",
    "OutputHandler",
    "PostExtractor",
    "InstaloaderExtractor",
    "YtDlpExtractor",
]
