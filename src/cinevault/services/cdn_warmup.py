"""
CDN warmup engine.

Requests public object URLs through the CDN so its edge nodes cache them
before real users ask. Work is split into fixed-size batches handled one
after another; inside a batch a bounded pool of workers pulls URLs from a
shared cursor, so one slow URL never strands idle workers.

Warmup is best effort: a URL that keeps failing is logged and counted,
never raised, and never stops the rest of the sweep.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping, Sequence

import httpx

from cinevault.config.settings import Settings
from cinevault.exceptions import WarmupError
from cinevault.models.media import WarmOptions, WarmResult
from cinevault.services.metadata_cache import MetadataCache
from cinevault.services.storage_keys import is_absolute_url

logger = logging.getLogger(__name__)

WARMED_MARKER_PREFIX = "precache:warmed:"

# Record fields that hold object keys of catalog artwork
DEFAULT_RECORD_FIELDS = ("posterUrl", "backdropUrl", "coverUrl")

_WARM_HEADERS = {
    "Accept": "image/*,*/*;q=0.8",
    "User-Agent": "CineVault-Warmup/1.0 (+cdn)",
}
_STATUS_BACKOFF_CAP = 10.0
_NETWORK_BACKOFF_CAP = 12.0
_JITTER_MAX_SECONDS = 0.2

_WARMED = "warmed"
_SKIPPED = "skipped"

Sleeper = Callable[[float], Awaitable[None]]


def warmed_marker_key(url: str) -> str:
    """Metadata-cache key of the "recently warmed" marker for *url*."""
    return f"{WARMED_MARKER_PREFIX}{url}"


def _default_jitter() -> float:
    return random.uniform(0, _JITTER_MAX_SECONDS)


class CdnWarmupEngine:
    """
    Issue bounded-concurrency GETs against public URLs of stored objects.

    Parameters
    ----------
    resolve_url : Callable[[str], str | None]
        Maps an object key to its public URL (``ObjectStoreGateway.public_url``).
    http_client : httpx.AsyncClient
        Shared client for the warm requests.
    cache : MetadataCache
        Holds the advisory "recently warmed" markers.
    default_concurrency : int
        Worker pool size when ``warm`` gets none.
    default_options : WarmOptions | None
        Options used when ``warm`` gets none.
    max_urls_per_run : int
        Cap on distinct URLs per ``warm`` call.
    batch_size : int
        URLs per batch.
    batch_pause : float
        Seconds to pause between batches.
    sleep : Callable[[float], Awaitable[None]]
        Sleep function (``asyncio.sleep`` by default).
    jitter : Callable[[], float]
        Returns the random extra delay in seconds added to each backoff.
    """

    def __init__(
        self,
        resolve_url: Callable[[str], str | None],
        http_client: httpx.AsyncClient,
        cache: MetadataCache,
        *,
        default_concurrency: int = 10,
        default_options: WarmOptions | None = None,
        max_urls_per_run: int = 2000,
        batch_size: int = 200,
        batch_pause: float = 0.5,
        sleep: Sleeper = asyncio.sleep,
        jitter: Callable[[], float] = _default_jitter,
    ) -> None:
        self._resolve_url = resolve_url
        self._http = http_client
        self._cache = cache
        self.default_concurrency = max(1, default_concurrency)
        self.default_options = default_options or WarmOptions()
        self._max_urls_per_run = max_urls_per_run
        self._batch_size = max(1, batch_size)
        self._batch_pause = batch_pause
        self._sleep = sleep
        self._jitter = jitter

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        resolve_url: Callable[[str], str | None],
        http_client: httpx.AsyncClient,
        cache: MetadataCache,
    ) -> CdnWarmupEngine:
        """Build an engine with the ``WARMUP_*`` defaults from *settings*."""
        return cls(
            resolve_url,
            http_client,
            cache,
            default_concurrency=settings.warmup_concurrency,
            default_options=WarmOptions(
                timeout_ms=settings.warmup_timeout_ms,
                retries=settings.warmup_retries,
                backoff_base_ms=settings.warmup_backoff_base_ms,
            ),
            max_urls_per_run=settings.warmup_max_urls_per_run,
            batch_size=settings.warmup_batch_size,
            batch_pause=settings.warmup_batch_pause,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_targets(self, keys: Iterable[str | None]) -> list[str]:
        """
        Deduplicate *keys* and map them to absolute public URLs.

        Keys without a public URL, and relative URLs that would hit the
        application itself, are dropped silently. Order of first
        appearance is kept and the list is capped at ``max_urls_per_run``.
        """
        urls: dict[str, None] = {}
        for key in keys:
            url = self._resolve(key)
            if url is not None:
                urls.setdefault(url, None)
        return list(urls)[: self._max_urls_per_run]

    def _resolve(self, key: str | None) -> str | None:
        if not key or not isinstance(key, str):
            return None
        url = self._resolve_url(key)
        if url and is_absolute_url(url):
            return url
        return None

    async def warm(
        self,
        keys: Iterable[str | None],
        concurrency: int | None = None,
        options: WarmOptions | None = None,
    ) -> WarmResult:
        """
        Warm the CDN for a set of object keys.

        Parameters
        ----------
        keys : Iterable[str | None]
            Object keys (or absolute URLs); empty entries are ignored.
        concurrency : int | None
            Maximum simultaneous GETs.
        options : WarmOptions | None
            Timeout, retry and skip-tracking options.

        Returns
        -------
        WarmResult
            Per-outcome counts; failures are counted, never raised.
        """
        key_list = list(keys)
        pool_size = max(1, concurrency or self.default_concurrency)
        opts = options or self.default_options
        urls = self.resolve_targets(key_list)
        result = WarmResult(
            requested=len(key_list),
            unresolved=sum(
                1 for k in set(key_list) if k and self._resolve(k) is None
            ),
        )
        if not urls:
            return result

        for start in range(0, len(urls), self._batch_size):
            batch = urls[start : start + self._batch_size]
            await self._run_batch(batch, pool_size, opts, result)
            if start + self._batch_size < len(urls) and self._batch_pause > 0:
                await self._sleep(self._batch_pause)

        logger.info(
            "CDN warmup finished: %d warmed, %d skipped, %d failed of %d URLs",
            result.warmed,
            result.skipped,
            result.failed,
            len(urls),
        )
        return result

    async def warm_from_records(
        self,
        records: Iterable[Mapping[str, str | None]],
        concurrency: int | None = None,
        options: WarmOptions | None = None,
    ) -> WarmResult:
        """Warm the poster, backdrop and cover keys of catalog records."""
        return await self.warm_from_fields(
            records, DEFAULT_RECORD_FIELDS, concurrency, options
        )

    async def warm_from_fields(
        self,
        records: Iterable[Mapping[str, str | None]],
        fields: Sequence[str],
        concurrency: int | None = None,
        options: WarmOptions | None = None,
    ) -> WarmResult:
        """Warm the non-blank values of *fields* across *records*."""
        keys: list[str] = []
        for record in records:
            for field in fields:
                value = record.get(field)
                if isinstance(value, str) and value.strip():
                    keys.append(value)
        return await self.warm(keys, concurrency, options)

    async def warm_url(self, url: str, options: WarmOptions | None = None) -> str:
        """
        Warm a single URL.

        Returns
        -------
        str
            ``"warmed"`` or ``"skipped"``.

        Raises
        ------
        WarmupError
            If the URL could not be warmed within the retry budget.
        """
        opts = options or self.default_options
        skip_ttl = opts.skip_recently_warmed_ttl_seconds

        if skip_ttl > 0 and await self._cache.get(warmed_marker_key(url)) == "1":
            return _SKIPPED

        timeout = opts.timeout_ms / 1000
        backoff_base = opts.backoff_base_ms / 1000

        attempt = 0
        while True:
            can_retry = attempt < opts.retries
            try:
                response = await self._http.get(
                    url, headers=_WARM_HEADERS, timeout=timeout
                )
            except httpx.TransportError as e:
                if not can_retry:
                    raise WarmupError(url, reason=f"{type(e).__name__}: {e}") from e
                await self._sleep(
                    min(_NETWORK_BACKOFF_CAP, backoff_base * 2**attempt) + self._jitter()
                )
                attempt += 1
                continue

            status = response.status_code
            if 200 <= status < 300 or status == 304:
                if skip_ttl > 0:
                    await self._cache.set(warmed_marker_key(url), "1", skip_ttl)
                return _WARMED

            if not ((status == 429 or status >= 500) and can_retry):
                raise WarmupError(url, status_code=status, reason=response.text[:80])
            await self._sleep(
                min(_STATUS_BACKOFF_CAP, backoff_base * 2**attempt) + self._jitter()
            )
            attempt += 1

    # ------------------------------------------------------------------
    # Worker pool
    # ------------------------------------------------------------------

    async def _run_batch(
        self,
        batch: list[str],
        pool_size: int,
        options: WarmOptions,
        result: WarmResult,
    ) -> None:
        cursor: Iterator[str] = iter(batch)

        async def worker() -> None:
            for url in cursor:
                try:
                    outcome = await self.warm_url(url, options)
                except WarmupError as e:
                    result.failed += 1
                    logger.warning("CDN warmup failed: %s", e)
                    continue
                except Exception as e:
                    result.failed += 1
                    logger.warning("CDN warmup failed for %s: %s", url, e)
                    continue
                if outcome == _SKIPPED:
                    result.skipped += 1
                else:
                    result.warmed += 1

        workers = [worker() for _ in range(min(pool_size, len(batch)))]
        await asyncio.gather(*workers)
