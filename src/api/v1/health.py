import time
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends

from core.config import Settings, get_settings
from schemas.api import HealthResponse


router = APIRouter()

_STARTED_AT = time.monotonic()


@router.get("/health", response_model=HealthResponse)
def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Health check endpoint for monitoring and load balancer health checks."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        uptime=round(time.monotonic() - _STARTED_AT, 3),
        environment=settings.ENVIRONMENT,
        model=settings.MODEL,
    )
