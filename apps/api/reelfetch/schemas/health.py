"""Health probe schemas."""

from datetime import datetime

from pydantic import BaseModel


class HealthStatus(BaseModel):
    status: str = "OK"
    timestamp: datetime
