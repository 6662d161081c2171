"""Health check endpoint - no authentication required."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from cinevault import __version__
from cinevault.api.deps import get_container
from cinevault.api.schemas.responses import HealthResponse, HealthStatus
from cinevault.container import Container

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(container: Container = Depends(get_container)) -> HealthResponse:
    """
    Health check endpoint - no authentication required.

    Returns application health status including:
    - Metadata cache reachability
    - Object storage and CDN purge configuration
    - Warmup scheduler state
    """
    settings = container.settings

    if not settings.is_redis_configured:
        cache_status = "disabled"
    elif await container.metadata_cache.ping():
        cache_status = "connected"
    else:
        cache_status = "disconnected"

    storage_configured = container.object_store.is_configured
    # A dead cache only costs latency; missing storage breaks image serving
    status = "healthy" if storage_configured else "degraded"

    scheduler_running = (
        "warmup_scheduler" in container.__dict__
        and container.warmup_scheduler.is_running
    )

    health_data = HealthStatus(
        status=status,
        version=__version__,
        cache=cache_status,
        storage_configured=storage_configured,
        purge_configured=settings.is_purge_configured,
        warmup_scheduler_running=scheduler_running,
        timestamp=datetime.now(timezone.utc),
    )

    return HealthResponse(data=health_data)
