"""Liveness probe."""

from datetime import UTC, datetime

from fastapi import APIRouter

from reelfetch.schemas.health import HealthStatus

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthStatus)
async def health() -> HealthStatus:
    return HealthStatus(timestamp=datetime.now(UTC))
