"""
Enums for cinevault models.

Defines enumeration types used across the application for consistent
type safety and validation.
"""

from __future__ import annotations

from enum import Enum


class TmdbSize(str, Enum):
    """Image size variants served by the TMDb image CDN."""

    W92 = "w92"
    W154 = "w154"
    W185 = "w185"
    W342 = "w342"
    W500 = "w500"
    W780 = "w780"
    W1280 = "w1280"
    ORIGINAL = "original"


class StoragePrefix(str, Enum):
    """Top-level namespaces inside the object store bucket."""

    TMDB = "tmdb"
    UPLOADS = "uploads"
    USER = "uploads/users"
    USER_AVATARS = "uploads/users/avatars"
    USER_BANNERS = "uploads/users/banners"


class WarmupScope(str, Enum):
    """Catalog areas covered by a CDN warmup run."""

    MOVIES = "movies"
    COLLECTIONS = "collections"
    SERIES = "series"
    ALL = "all"
