"""
Dependency Injection Container for cinevault.

This module is the composition root of the application. It owns the
long-lived shared handles (Redis client, boto3 client, httpx client) and
wires every service on top of them:

- Shared handles and services are singletons via ``@cached_property``
  (lazy initialization, same instance on repeated access)
- ``aclose()`` releases the network handles on shutdown
- ``reset()`` drops cached singletons for testing isolation

Usage
-----
    >>> from cinevault.container import container
    >>> key = await container.media_cache.ensure_cached(descriptor)
    >>> await container.aclose()
"""

from __future__ import annotations

import logging
from functools import cached_property
from typing import Optional

import httpx

from cinevault.config.settings import Settings, get_settings
from cinevault.services.cdn_purge import CloudflarePurgeClient
from cinevault.services.cdn_warmup import CdnWarmupEngine
from cinevault.services.media_upload import MediaUploadService
from cinevault.services.metadata_cache import (
    MetadataCache,
    NullCacheBackend,
    RedisCacheBackend,
)
from cinevault.services.object_store import ObjectStoreGateway
from cinevault.services.pull_through import PullThroughMediaCache
from cinevault.services.warmup_job import CdnWarmupJob, WarmupScheduler

logger = logging.getLogger(__name__)

_SINGLETONS = (
    "redis_backend",
    "metadata_cache",
    "http_client",
    "object_store",
    "media_cache",
    "warmup_engine",
    "purge_client",
    "upload_service",
    "warmup_job",
    "warmup_scheduler",
)


class Container:
    """
    Dependency injection container for cinevault.

    Parameters
    ----------
    settings : Settings | None
        Application settings; the process-wide settings when omitted.

    Examples
    --------
        >>> container = Container(Settings(redis_url=""))
        >>> container.metadata_cache is container.metadata_cache
        True
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Shared handles
    # -------------------------------------------------------------------------

    @cached_property
    def redis_backend(self) -> RedisCacheBackend | None:
        """Redis backend, or ``None`` when ``REDIS_URL`` is empty."""
        if not self.settings.is_redis_configured:
            logger.info("REDIS_URL not set; metadata cache disabled")
            return None
        return RedisCacheBackend.from_url(
            self.settings.redis_url,
            password=self.settings.redis_password,
            socket_timeout=self.settings.redis_socket_timeout,
        )

    @cached_property
    def metadata_cache(self) -> MetadataCache:
        """Fail-safe metadata cache over Redis (or the null backend)."""
        return MetadataCache(self.redis_backend or NullCacheBackend())

    @cached_property
    def http_client(self) -> httpx.AsyncClient:
        """Shared HTTP client for origin fetches, warmup and purge."""
        return httpx.AsyncClient(
            follow_redirects=True,
            limits=httpx.Limits(max_connections=64, max_keepalive_connections=32),
        )

    # -------------------------------------------------------------------------
    # Services
    # -------------------------------------------------------------------------

    @cached_property
    def object_store(self) -> ObjectStoreGateway:
        return ObjectStoreGateway.from_settings(self.settings, self.metadata_cache)

    @cached_property
    def media_cache(self) -> PullThroughMediaCache:
        return PullThroughMediaCache.from_settings(
            self.settings, self.object_store, self.http_client
        )

    @cached_property
    def warmup_engine(self) -> CdnWarmupEngine:
        return CdnWarmupEngine.from_settings(
            self.settings,
            self.object_store.public_url,
            self.http_client,
            self.metadata_cache,
        )

    @cached_property
    def purge_client(self) -> CloudflarePurgeClient:
        return CloudflarePurgeClient.from_settings(self.settings, self.http_client)

    @cached_property
    def upload_service(self) -> MediaUploadService:
        return MediaUploadService(self.object_store, self.purge_client)

    @cached_property
    def warmup_job(self) -> CdnWarmupJob:
        return CdnWarmupJob.from_settings(self.settings, self.warmup_engine)

    @cached_property
    def warmup_scheduler(self) -> WarmupScheduler:
        return WarmupScheduler(
            self.warmup_job, self.settings.warmup_interval_minutes * 60
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def aclose(self) -> None:
        """Close the Redis and HTTP handles that were created."""
        if "warmup_scheduler" in self.__dict__:
            await self.warmup_scheduler.stop()
        backend = self.__dict__.get("redis_backend")
        if backend is not None:
            await backend.close()
        client = self.__dict__.get("http_client")
        if client is not None:
            await client.aclose()
        self.reset()

    def reset(self) -> None:
        """
        Clear all cached singleton instances.

        Used by tests to inject replacements and restore a clean state.
        """
        for prop in _SINGLETONS:
            self.__dict__.pop(prop, None)


# Global container instance
container = Container()
