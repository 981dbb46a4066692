"""Health check endpoint."""

from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from storefront_analytics import __version__
from storefront_analytics.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["ok", "degraded", "unhealthy"]
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check.

    The engine holds no connections, so liveness is the only signal.
    """
    logger.debug("health.check_started")
    return HealthResponse(status="ok", version=__version__)
