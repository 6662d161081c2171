"""FastAPI application for cinevault API."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response

from cinevault import __version__
from cinevault.api.exception_handlers import register_exception_handlers
from cinevault.api.routers import cron, health, images
from cinevault.config.logging import configure_logging
from cinevault.container import container

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup
    app_container = app.state.container
    configure_logging(app_container.settings.log_level)
    if app_container.settings.warmup_enabled:
        await app_container.warmup_scheduler.start()
    yield
    # Shutdown
    await app_container.aclose()


app = FastAPI(
    title="CineVault Media API",
    description="Pull-through TMDb image cache and CDN warmup for CineVault",
    version=__version__,
    lifespan=lifespan,
)
app.state.container = container
register_exception_handlers(app)


@app.middleware("http")
async def log_requests(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    """
    Log one line per request: method, path, status and timing.

    The query string is never logged. 4xx responses log at WARNING and
    5xx at ERROR.
    """
    start_time = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start_time

    status_code = response.status_code
    if status_code >= 500:
        log_level = logging.ERROR
    elif status_code >= 400:
        log_level = logging.WARNING
    else:
        log_level = logging.INFO

    logger.log(
        log_level,
        "%s %s - %d (%.3fs)",
        request.method,
        request.url.path,
        status_code,
        duration,
    )
    return response


# Mount routers under /api/v1 prefix
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(images.router, prefix="/api/v1", tags=["images"])
app.include_router(cron.router, prefix="/api/v1", tags=["cron"])
