"""Route modules."""

from .downloads import router as downloads_router
from .health import router as health_router
from .media import router as media_router

__all__ = ["downloads_router", "health_router", "media_router"]
