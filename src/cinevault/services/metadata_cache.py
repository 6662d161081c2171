"""
Metadata cache (L1) over a TTL key-value store.

Provides a get-or-compute cache used by every other service to memoize
expensive lookups such as existence checks and signed URLs. The cache
is purely an optimization: when the backend is missing or failing, reads
miss, writes are skipped, and callers still get their computed values.

Classes
-------
CacheBackend
    Protocol for raw string key-value stores with TTL.
RedisCacheBackend
    ``redis.asyncio`` implementation of the backend protocol.
NullCacheBackend
    Backend used when no store is configured.
FailSafeCacheBackend
    Wrapper that turns any backend failure into a logged miss/no-op.
MetadataCache
    JSON-serializing get-or-compute facade.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from cinevault.exceptions import CacheBackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 3600


@runtime_checkable
class CacheBackend(Protocol):
    """Raw string store with per-key TTL."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def ping(self) -> bool: ...


class RedisCacheBackend:
    """
    Cache backend on a shared ``redis.asyncio`` client.

    Every Redis failure is re-raised as ``CacheBackendError`` so the
    fail-safe wrapper can treat all backends alike.

    Parameters
    ----------
    client : Redis
        Long-lived client; created with ``decode_responses=True``.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        password: str | None = None,
        socket_timeout: float = 2.0,
    ) -> RedisCacheBackend:
        """Build a backend from a ``redis://`` URL.

        The connection is opened lazily on the first command.
        """
        client = Redis.from_url(
            url,
            password=password or None,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    async def get(self, key: str) -> str | None:
        try:
            value = await self._client.get(key)
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"Redis GET failed: {e}", "get", e) from e
        if value is None:
            return None
        return value if isinstance(value, str) else value.decode("utf-8")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.setex(key, ttl_seconds, value)
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"Redis SETEX failed: {e}", "set", e) from e

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"Redis DEL failed: {e}", "delete", e) from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"Redis PING failed: {e}", "ping", e) from e

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()


class NullCacheBackend:
    """Backend that stores nothing; used when Redis is not configured."""

    async def get(self, key: str) -> str | None:
        return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None

    async def ping(self) -> bool:
        return False


class FailSafeCacheBackend:
    """
    Wrap any backend so that failures degrade instead of propagating.

    Reads that fail return ``None`` (a miss); writes and deletes that fail
    are dropped. Each failure is logged at WARNING with the operation and
    key, so a dead cache is visible without breaking callers.

    Parameters
    ----------
    inner : CacheBackend
        The backend to protect.
    """

    def __init__(self, inner: CacheBackend) -> None:
        self._inner = inner

    @property
    def inner(self) -> CacheBackend:
        """The wrapped backend."""
        return self._inner

    async def get(self, key: str) -> str | None:
        try:
            return await self._inner.get(key)
        except Exception as e:
            logger.warning("Cache read failed for %s; treating as miss: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._inner.set(key, value, ttl_seconds)
        except Exception as e:
            logger.warning("Cache write failed for %s; ignoring: %s", key, e)

    async def delete(self, key: str) -> None:
        try:
            await self._inner.delete(key)
        except Exception as e:
            logger.warning("Cache delete failed for %s; ignoring: %s", key, e)

    async def ping(self) -> bool:
        try:
            return await self._inner.ping()
        except Exception as e:
            logger.warning("Cache ping failed: %s", e)
            return False


class MetadataCache:
    """
    JSON get-or-compute cache.

    Values are serialized with ``json`` and never interpreted. A value
    that fails to decode is treated as a miss. Concurrent misses on the
    same key may both run ``compute``; there is no request coalescing.

    Parameters
    ----------
    backend : CacheBackend
        Store to use. It is wrapped in ``FailSafeCacheBackend`` unless it
        already is one.

    Examples
    --------
    >>> cache = MetadataCache(RedisCacheBackend.from_url("redis://localhost:6379"))
    >>> details = await cache.get_or_set("tmdb:movie:603", 3600, fetch_details)
    """

    def __init__(self, backend: CacheBackend | None = None) -> None:
        if backend is None:
            backend = NullCacheBackend()
        if not isinstance(backend, FailSafeCacheBackend):
            backend = FailSafeCacheBackend(backend)
        self._backend = backend

    @property
    def backend(self) -> FailSafeCacheBackend:
        """The fail-safe backend in use."""
        return self._backend

    async def get_or_set(
        self,
        key: str,
        ttl_seconds: int,
        compute: Callable[[], Awaitable[T]],
    ) -> T:
        """Return the cached value for *key* or compute, store and return it.

        Parameters
        ----------
        key : str
            Cache key (namespaced by the caller).
        ttl_seconds : int
            Expiry for a freshly computed value.
        compute : Callable[[], Awaitable[T]]
            Async factory called on a miss. Its exceptions propagate.

        Returns
        -------
        T
            Cached or freshly computed value.
        """
        cached = await self._read(key)
        if cached is not _MISS:
            return cached  # type: ignore[return-value]

        value = await compute()
        await self.set(key, value, ttl_seconds)
        return value

    async def get(self, key: str) -> Any | None:
        """Return the cached value for *key*, or ``None`` on a miss."""
        cached = await self._read(key)
        return None if cached is _MISS else cached

    async def set(
        self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS
    ) -> None:
        """Store *value* under *key* for *ttl_seconds*."""
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.warning("Value for %s is not JSON serializable; not cached: %s", key, e)
            return
        await self._backend.set(key, payload, max(1, int(ttl_seconds)))

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache."""
        await self._backend.delete(key)

    async def ping(self) -> bool:
        """Check backend reachability (``False`` when unconfigured)."""
        return await self._backend.ping()

    async def _read(self, key: str) -> Any:
        raw = await self._backend.get(key)
        if raw is None:
            return _MISS
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Undecodable cache entry for %s; treating as miss", key)
            return _MISS


class _Miss:
    """Sentinel type so cached ``null`` values stay distinguishable."""

    __slots__ = ()


_MISS = _Miss()
