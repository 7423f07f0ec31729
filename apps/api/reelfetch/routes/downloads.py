"""Download job routes."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Path

from reelfetch.routes.dependencies import get_download_service
from reelfetch.schemas.download import DownloadAccepted, DownloadRequest
from reelfetch.schemas.error import ErrorResponse
from reelfetch.schemas.job import ProgressSnapshot
from reelfetch.services.downloads import DownloadService

router = APIRouter(tags=["Downloads"])


@router.post(
    "/download-reel",
    response_model=DownloadAccepted,
    responses={400: {"model": ErrorResponse}},
)
async def submit_download(
    payload: DownloadRequest,
    background_tasks: BackgroundTasks,
    service: Annotated[DownloadService, Depends(get_download_service)],
) -> DownloadAccepted:
    job_id = service.submit(payload.url)
    background_tasks.add_task(service.run_job, job_id, payload.url)
    return DownloadAccepted(progress_id=job_id)


@router.get(
    "/progress/{jobId}",
    response_model=ProgressSnapshot,
    response_model_exclude_unset=True,
)
async def get_progress(
    job_id: Annotated[str, Path(alias="jobId")],
    service: Annotated[DownloadService, Depends(get_download_service)],
) -> ProgressSnapshot:
    return service.get_progress(job_id)
