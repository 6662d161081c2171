"""
Pull-through cache for TMDb images.

Guarantees that a remote image is present in the object store, fetching
it from the TMDb image origin only on a miss. Uploads are gated by the
SHA-256 of the body, so concurrent callers racing on the same descriptor
converge on the same stored object without any locking; a duplicate
origin fetch is wasted work, not a correctness problem.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from cinevault.config.settings import Settings
from cinevault.exceptions import OriginFetchError, OriginHTTPError
from cinevault.models.media import RemoteMediaDescriptor
from cinevault.services.object_store import ObjectStoreGateway
from cinevault.services.storage_keys import sha256_hex, tmdb_key

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cache-Control directives for mirrored images
# ---------------------------------------------------------------------------
CACHE_CONTROL_LONG = "public, max-age=31536000, immutable"  # 1 year
CACHE_CONTROL_SHORT = "public, max-age=86400"  # 1 day

_DEFAULT_CONTENT_TYPE = "image/jpeg"

Sleeper = Callable[[float], Awaitable[None]]


def is_transient(error: Exception) -> bool:
    """
    Classify an origin failure as worth retrying.

    Timeouts, connection failures (reset, refused, DNS), 429 and 5xx
    responses and empty bodies are transient. Any other HTTP status is
    terminal.
    """
    if isinstance(error, httpx.TimeoutException):
        return True
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, OriginHTTPError):
        return error.status_code == 0 or error.status_code == 429 or error.status_code >= 500
    return False


class PullThroughMediaCache:
    """
    Mirror TMDb images into the object store on demand.

    Parameters
    ----------
    store : ObjectStoreGateway
        Gateway used for hint checks, HEAD verification and uploads.
    http_client : httpx.AsyncClient
        Shared client for origin fetches.
    origin_base_url : str
        TMDb image base URL (e.g. ``https://image.tmdb.org/t/p``).
    user_agent : str
        ``User-Agent`` sent to the origin.
    timeout : float
        Timeout in seconds of one fetch attempt.
    retries : int
        Extra attempts after the first; at most ``retries + 1`` fetches.
    backoff_base : float
        Base delay in seconds; attempt *n* waits ``base * 2**n``.
    backoff_cap : float
        Maximum delay in seconds between attempts.
    sleep : Callable[[float], Awaitable[None]]
        Sleep function (``asyncio.sleep`` by default).
    """

    def __init__(
        self,
        store: ObjectStoreGateway,
        http_client: httpx.AsyncClient,
        *,
        origin_base_url: str = "https://image.tmdb.org/t/p",
        user_agent: str = "CineVault/1.0",
        timeout: float = 18.0,
        retries: int = 3,
        backoff_base: float = 1.0,
        backoff_cap: float = 16.0,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._store = store
        self._http = http_client
        self._origin_base_url = origin_base_url.rstrip("/")
        self._user_agent = user_agent
        self._timeout = timeout
        self._retries = max(0, retries)
        self._backoff_base = backoff_base
        self._backoff_cap = backoff_cap
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: ObjectStoreGateway,
        http_client: httpx.AsyncClient,
    ) -> PullThroughMediaCache:
        """Build the cache with origin and retry tuning from *settings*."""
        return cls(
            store,
            http_client,
            origin_base_url=settings.tmdb_image_base_url,
            user_agent=f"CineVault/1.0 (+{settings.app_url})",
            timeout=settings.origin_timeout,
            retries=settings.origin_retries,
            backoff_base=settings.origin_backoff_base,
            backoff_cap=settings.origin_backoff_cap,
        )

    @property
    def max_attempts(self) -> int:
        """Upper bound on origin fetches per ``ensure_cached`` call."""
        return self._retries + 1

    def origin_url(self, descriptor: RemoteMediaDescriptor) -> str:
        """Origin URL of *descriptor*."""
        return f"{self._origin_base_url}/{descriptor.size.value}/{descriptor.file_path}"

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after zero-based *attempt*."""
        return min(self._backoff_base * (2**attempt), self._backoff_cap)

    async def ensure_cached(self, descriptor: RemoteMediaDescriptor) -> str:
        """
        Make sure the image exists in the object store and return its key.

        Flow:
        1. Compute the object key.
        2. If the "known cached" hint is set, verify with HEAD; present ->
           return. A false positive clears the hints and falls through.
        3. Fetch from the origin with a bounded timeout.
        4. Hash the body, upload with ``skip_if_same_hash``, set the hint.
        5. Retry transient failures with capped exponential backoff.

        Parameters
        ----------
        descriptor : RemoteMediaDescriptor
            File path and size variant at the origin.

        Returns
        -------
        str
            Object key, e.g. ``"tmdb/w500/abc.jpg"``.

        Raises
        ------
        OriginFetchError
            If the origin could not deliver the image.
        """
        key = tmdb_key(descriptor.file_path, descriptor.size)

        if await self._store.is_known_cached(key):
            if await self._store.head(key) is not None:
                logger.debug("Known cached: %s", key)
                return key
            logger.warning(
                "Cache reports %s as stored but the object is missing; refetching",
                key,
            )
            await self._store.forget_known_cached(key)

        url = self.origin_url(descriptor)
        last_error: Exception | None = None

        for attempt in range(self.max_attempts):
            try:
                body, content_type = await self._fetch(url)
            except (httpx.HTTPError, OriginHTTPError) as e:
                last_error = e
                transient = is_transient(e)
                logger.warning(
                    "TMDb fetch attempt %d/%d%s failed: %s -> %s",
                    attempt + 1,
                    self.max_attempts,
                    " (timeout)" if isinstance(e, httpx.TimeoutException) else "",
                    url,
                    e,
                )
                if not transient:
                    raise OriginFetchError(url, attempt + 1, e) from e
                if attempt < self.max_attempts - 1:
                    await self._sleep(self.backoff_delay(attempt))
                continue

            await self._store.put(
                key,
                body,
                content_type=content_type or descriptor.content_type_hint or _DEFAULT_CONTENT_TYPE,
                cache_control=CACHE_CONTROL_LONG if descriptor.long_cache else CACHE_CONTROL_SHORT,
                content_hash=sha256_hex(body),
                skip_if_same_hash=True,
            )
            await self._store.mark_known_cached(key)
            if attempt > 0:
                logger.info("TMDb fetch succeeded on attempt %d: %s", attempt + 1, url)
            return key

        raise OriginFetchError(url, self.max_attempts, last_error)

    async def ensure_cached_or_placeholder(
        self,
        descriptor: RemoteMediaDescriptor,
        placeholder_key: str,
    ) -> str:
        """Like ``ensure_cached`` but returns *placeholder_key* on origin failure."""
        try:
            return await self.ensure_cached(descriptor)
        except OriginFetchError as e:
            logger.info("Using placeholder for %s: %s", descriptor.file_path, e)
            return placeholder_key

    async def _fetch(self, url: str) -> tuple[bytes, str | None]:
        """One origin fetch attempt bounded by the configured timeout."""
        response = await self._http.get(
            url,
            headers={"User-Agent": self._user_agent},
            timeout=self._timeout,
        )
        if not response.is_success:
            raise OriginHTTPError(url, response.status_code, response.reason_phrase)
        body = response.content
        if not body:
            raise OriginHTTPError(url, 0, "Empty image body")
        return body, response.headers.get("content-type")
