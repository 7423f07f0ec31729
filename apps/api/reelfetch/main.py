"""FastAPI application entrypoint."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from reelfetch.adapters.extractors import InstaloaderExtractor, PostExtractor, YtDlpExtractor
from reelfetch.core.config import Settings, get_settings
from reelfetch.errors import ApiError
from reelfetch.repositories.memory import InMemoryProgressStore
from reelfetch.routes import downloads_router, health_router, media_router
from reelfetch.schemas.error import ErrorResponse
from reelfetch.services.retention import RetentionSweeper

logger = logging.getLogger(__name__)

_DOWNLOAD_VALIDATION_PATHS: set[tuple[str, str]] = {
    ("POST", "/api/download-reel"),
}


def build_extractors(settings: Settings) -> list[PostExtractor]:
    """Extractors in the order they are tried."""
    return [
        YtDlpExtractor(
            output_root=settings.output_dir,
            command=settings.ytdlp_command,
            timeout_seconds=settings.ytdlp_timeout_seconds,
            video_format=settings.ytdlp_format,
            user_agent=settings.user_agent,
            referer=settings.referer,
        ),
        InstaloaderExtractor(
            output_root=settings.output_dir,
            command=settings.instaloader_command,
            timeout_seconds=settings.instaloader_timeout_seconds,
        ),
    ]


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.settings.output_dir.mkdir(parents=True, exist_ok=True)
    yield
    app.state.sweeper.cancel_all()


def _error_payload(message: str, *, success: bool | None = None) -> dict:
    return ErrorResponse(success=success, error=message).model_dump(exclude_none=True)


def create_app(
    settings: Settings | None = None,
    extractors: Sequence[PostExtractor] | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(title="ReelFetch API", version="1.0.0", lifespan=_lifespan)
    app.state.settings = settings
    app.state.store = InMemoryProgressStore()
    app.state.sweeper = RetentionSweeper(delay_seconds=settings.retention_seconds)
    app.state.extractors = list(extractors) if extractors is not None else build_extractors(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Submission keeps the 400 contract for malformed bodies and non-string URLs.
        route = request.scope.get("route")
        route_path = getattr(route, "path", request.url.path)
        route_key = (request.method.upper(), route_path)
        if route_key in _DOWNLOAD_VALIDATION_PATHS:
            return JSONResponse(
                status_code=400,
                content=_error_payload("Valid Instagram URL is required", success=False),
            )

        return await request_validation_exception_handler(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "request.failed method=%s path=%s reason=%s",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content=_error_payload("Internal server error"))

    api_prefix = "/api"
    app.include_router(downloads_router, prefix=api_prefix)
    app.include_router(health_router, prefix=api_prefix)
    app.include_router(media_router)

    return app


app = create_app()


def run() -> None:
    """Serve the module-level app with uvicorn on the configured address."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("reelfetch.main:app", host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    run()
