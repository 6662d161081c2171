"""FastAPI dependencies for API endpoints."""

import secrets
from typing import Optional

from fastapi import Depends, Header, Request

from cinevault.config.settings import Settings
from cinevault.container import Container
from cinevault.exceptions import AuthenticationError
from cinevault.services.object_store import ObjectStoreGateway
from cinevault.services.pull_through import PullThroughMediaCache
from cinevault.services.warmup_job import CdnWarmupJob


def get_container(request: Request) -> Container:
    """
    Dependency for the application container.

    Returns
    -------
    Container
        The container attached to ``app.state`` at startup.
    """
    container: Container = request.app.state.container
    return container


def get_settings(container: Container = Depends(get_container)) -> Settings:
    return container.settings


def get_object_store(container: Container = Depends(get_container)) -> ObjectStoreGateway:
    return container.object_store


def get_media_cache(container: Container = Depends(get_container)) -> PullThroughMediaCache:
    return container.media_cache


def get_warmup_job(container: Container = Depends(get_container)) -> CdnWarmupJob:
    return container.warmup_job


async def require_cron_secret(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Dependency to require ``Authorization: Bearer <CRON_SECRET>``.

    An empty ``CRON_SECRET`` rejects every request.

    Raises
    ------
    AuthenticationError
        If the secret is missing or wrong (mapped to 401).
    """
    secret = settings.cron_secret
    expected = f"Bearer {secret}"
    if not secret or not authorization or not secrets.compare_digest(
        authorization.encode("utf-8"), expected.encode("utf-8")
    ):
        raise AuthenticationError("Unauthorized")
