"""API error response schemas."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    success: bool | None = None
    error: str
