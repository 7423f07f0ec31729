"""Download job schemas."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DownloadStatus(str, Enum):
    STARTING = "starting"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"
    ERROR = "error"


class MediaArtifact(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_url: str
    thumbnail_url: str | None = None
    title: str
    uploader: str
    duration: float | None = None
    quality: str
    file_size: str | None = Field(default=None, alias="fileSize")


class Alternative(BaseModel):
    name: str
    url: str
    description: str


class ProgressSnapshot(BaseModel):
    """Current state of a download job as seen by polling clients."""

    status: DownloadStatus | Literal["not_found"]
    progress: int
    message: str | None = None
    data: MediaArtifact | None = None
    alternatives: list[Alternative] | None = None
    error: str | None = None

    @classmethod
    def not_found(cls) -> "ProgressSnapshot":
        return cls(status="not_found", progress=0)
