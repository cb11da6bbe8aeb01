"""Core routes: health, metrics."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from sportsim.security import limiter
from sportsim.state import Services, get_services
from sportsim.telemetry import get_metrics_text
from sportsim.telemetry.sentry import is_sentry_enabled

router = APIRouter(tags=["core"])


class HealthResponse(BaseModel):
    status: str
    oracle_configured: bool
    queue_pending: int
    error_reporting: bool


@router.get("/health", response_model=HealthResponse)
@limiter.limit("120/minute")
async def health_check(request: Request, services: Services = Depends(get_services)):
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        oracle_configured=services.oracle.has_api_key,
        queue_pending=services.scheduler.pending,
        error_reporting=is_sentry_enabled(),
    )


@router.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint for oracle traffic."""
    content, content_type = get_metrics_text()
    return PlainTextResponse(content=content, media_type=content_type)
