"""
Services module for cinevault.

Contains the metadata cache, the object store gateway, the TMDb
pull-through cache, CDN warmup and purge, and user media uploads.
"""

from __future__ import annotations

from cinevault.services.cdn_purge import CloudflarePurgeClient
from cinevault.services.cdn_warmup import CdnWarmupEngine
from cinevault.services.media_upload import MediaUploadService
from cinevault.services.metadata_cache import (
    FailSafeCacheBackend,
    MetadataCache,
    NullCacheBackend,
    RedisCacheBackend,
)
from cinevault.services.object_store import ObjectStoreGateway
from cinevault.services.pull_through import PullThroughMediaCache
from cinevault.services.warmup_job import (
    CdnWarmupJob,
    ManifestImageSource,
    WarmupScheduler,
)

__all__: list[str] = [
    "CdnWarmupEngine",
    "CdnWarmupJob",
    "CloudflarePurgeClient",
    "FailSafeCacheBackend",
    "ManifestImageSource",
    "MediaUploadService",
    "MetadataCache",
    "NullCacheBackend",
    "ObjectStoreGateway",
    "PullThroughMediaCache",
    "RedisCacheBackend",
    "WarmupScheduler",
]
