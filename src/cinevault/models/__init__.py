"""
Data models for cinevault.

Pydantic models and enums shared by the caching and warmup services.
"""

from __future__ import annotations

from cinevault.models.enums import StoragePrefix, TmdbSize, WarmupScope
from cinevault.models.media import (
    ObjectHead,
    RemoteMediaDescriptor,
    WarmOptions,
    WarmResult,
    WarmupRunResult,
)

__all__ = [
    "ObjectHead",
    "RemoteMediaDescriptor",
    "StoragePrefix",
    "TmdbSize",
    "WarmOptions",
    "WarmResult",
    "WarmupRunResult",
    "WarmupScope",
]
