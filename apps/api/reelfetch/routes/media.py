"""Media file routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from reelfetch.routes.dependencies import get_delivery_service
from reelfetch.schemas.error import ErrorResponse
from reelfetch.services.delivery import MediaDeliveryService

router = APIRouter(tags=["Media"])


@router.get(
    "/download/{filename}",
    response_class=StreamingResponse,
    responses={
        206: {"description": "Partial video content"},
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        416: {"description": "Requested range not satisfiable"},
    },
)
async def download_media(
    filename: str,
    request: Request,
    service: Annotated[MediaDeliveryService, Depends(get_delivery_service)],
    directory: Annotated[str | None, Query(alias="dir")] = None,
    download: str | None = None,
) -> StreamingResponse:
    stream = service.open_stream(
        filename=filename,
        directory=directory,
        headers=request.headers,
        attachment=download == "true",
    )
    return StreamingResponse(
        stream.body,
        status_code=stream.status_code,
        headers=stream.headers,
        media_type=stream.media_type,
    )
