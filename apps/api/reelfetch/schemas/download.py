"""Download submission schemas."""

from pydantic import BaseModel, Field, StrictStr


class DownloadRequest(BaseModel):
    url: StrictStr


class DownloadAccepted(BaseModel):
    success: bool = True
    progress_id: str = Field(serialization_alias="progressId")
    message: str = "Download started"
