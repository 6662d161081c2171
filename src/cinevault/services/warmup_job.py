"""
Scheduled CDN warmup over the newest catalog artwork.

``CdnWarmupJob`` collects the latest poster, backdrop, cover and still
keys per catalog area and feeds them to the warmup engine. Each area runs
in its own error boundary so a broken source for one area never stops
the others. ``WarmupScheduler`` repeats the job on a fixed interval as a
background asyncio task.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from cinevault.config.settings import Settings
from cinevault.models.enums import WarmupScope
from cinevault.models.media import WarmupRunResult
from cinevault.services.cdn_warmup import CdnWarmupEngine

logger = logging.getLogger(__name__)

MIN_LIMIT, MAX_LIMIT = 1, 5000
MIN_CONCURRENCY, MAX_CONCURRENCY = 1, 24
DEFAULT_SCOPE_PAUSE = 1.5

CatalogRow = Mapping[str, Any]

# Catalog entity -> artwork fields warmed for it, per scope
SCOPE_ENTITIES: dict[WarmupScope, tuple[tuple[str, tuple[str, ...]], ...]] = {
    WarmupScope.MOVIES: (("movies", ("posterUrl", "backdropUrl")),),
    WarmupScope.COLLECTIONS: (
        ("collections", ("posterUrl", "backdropUrl", "coverUrl")),
    ),
    WarmupScope.SERIES: (
        ("series", ("posterUrl", "backdropUrl")),
        ("seasons", ("posterUrl",)),
        ("episodes", ("stillUrl",)),
    ),
}

_SCOPE_ORDER = (WarmupScope.MOVIES, WarmupScope.COLLECTIONS, WarmupScope.SERIES)


def clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


def parse_scope(value: WarmupScope | str | None, default: WarmupScope = WarmupScope.ALL) -> WarmupScope:
    """
    Parse a scope name; ``both`` is an alias of ``all``.

    Unknown names fall back to *default*.
    """
    if value is None:
        return default
    if isinstance(value, WarmupScope):
        return value
    name = value.strip().lower()
    if name == "both":
        return WarmupScope.ALL
    try:
        return WarmupScope(name)
    except ValueError:
        return default


def count_keys(rows: Sequence[CatalogRow], fields: Sequence[str]) -> int:
    """Count non-empty values of *fields* across *rows*."""
    return sum(1 for row in rows for field in fields if row.get(field))


@runtime_checkable
class CatalogImageSource(Protocol):
    """Source of the most recently updated catalog rows."""

    async def latest(self, entity: str, limit: int) -> Sequence[CatalogRow]:
        """Return up to *limit* rows of *entity*, newest first."""
        ...


class ManifestImageSource:
    """
    Catalog source backed by a JSON manifest file.

    The manifest maps entity names to lists of rows ordered newest first::

        {
          "movies": [{"posterUrl": "tmdb/w500/a.jpg", "backdropUrl": null}],
          "episodes": [{"stillUrl": "tmdb/w300/s.jpg"}]
        }

    The file is re-read on every call so an external exporter can replace
    it between runs.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    async def latest(self, entity: str, limit: int) -> Sequence[CatalogRow]:
        raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        manifest = json.loads(raw)
        if not isinstance(manifest, dict):
            raise ValueError(f"Manifest {self.path} must be a JSON object")
        rows = manifest.get(entity) or []
        if not isinstance(rows, list):
            raise ValueError(f"Manifest entry '{entity}' must be a list")
        return [row for row in rows if isinstance(row, dict)][:limit]


class EmptyImageSource:
    """Catalog source with no rows; used when no manifest is configured."""

    async def latest(self, entity: str, limit: int) -> Sequence[CatalogRow]:
        return []


class CdnWarmupJob:
    """
    Warm the CDN for the newest artwork of each catalog area.

    Parameters
    ----------
    engine : CdnWarmupEngine
        Engine that performs the warm requests.
    source : CatalogImageSource
        Provider of the newest catalog rows.
    default_scope : WarmupScope
        Scope used when ``run`` gets none.
    default_limit : int
        Rows per entity when ``run`` gets none.
    default_concurrency : int
        Pool size when ``run`` gets none.
    scope_pause : float
        Seconds to pause between areas of an ``all`` run.
    sleep : Callable[[float], Awaitable[None]]
        Sleep function (``asyncio.sleep`` by default).
    """

    def __init__(
        self,
        engine: CdnWarmupEngine,
        source: CatalogImageSource,
        *,
        default_scope: WarmupScope = WarmupScope.ALL,
        default_limit: int = 400,
        default_concurrency: int = 10,
        scope_pause: float = DEFAULT_SCOPE_PAUSE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._engine = engine
        self._source = source
        self.default_scope = default_scope
        self.default_limit = default_limit
        self.default_concurrency = default_concurrency
        self.scope_pause = scope_pause
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        engine: CdnWarmupEngine,
        source: CatalogImageSource | None = None,
    ) -> CdnWarmupJob:
        if source is None:
            source = (
                ManifestImageSource(settings.warmup_manifest_path)
                if settings.warmup_manifest_path
                else EmptyImageSource()
            )
        return cls(
            engine,
            source,
            default_scope=parse_scope(settings.warmup_scope),
            default_limit=settings.warmup_limit,
            default_concurrency=settings.warmup_concurrency,
            scope_pause=settings.warmup_scope_pause,
        )

    async def run(
        self,
        scope: WarmupScope | str | None = None,
        limit: int | None = None,
        concurrency: int | None = None,
        pause: float | None = None,
    ) -> WarmupRunResult:
        """
        Run one warmup pass.

        Parameters
        ----------
        scope : WarmupScope | str | None
            ``movies``, ``collections``, ``series`` or ``all``.
        limit : int | None
            Newest rows per entity, clamped to 1-5000.
        concurrency : int | None
            Parallel warm requests, clamped to 1-24.
        pause : float | None
            Seconds between areas of an ``all`` run; 0 disables.

        Returns
        -------
        WarmupRunResult
            Number of keys submitted plus one error per failed area.
        """
        run_scope = parse_scope(scope, self.default_scope)
        run_limit = clamp(limit if limit is not None else self.default_limit, MIN_LIMIT, MAX_LIMIT)
        run_concurrency = clamp(
            concurrency if concurrency is not None else self.default_concurrency,
            MIN_CONCURRENCY,
            MAX_CONCURRENCY,
        )
        pause_seconds = max(0.0, self.scope_pause if pause is None else pause)

        result = WarmupRunResult(
            scope=run_scope, limit=run_limit, concurrency=run_concurrency
        )
        areas = _SCOPE_ORDER if run_scope == WarmupScope.ALL else (run_scope,)

        for index, area in enumerate(areas):
            try:
                result.warmed += await self._warm_area(area, run_limit, run_concurrency)
            except Exception as e:
                logger.warning("CDN warmup of %s failed: %s", area.value, e)
                result.errors.append(f"{area.value}: {e}")
            if pause_seconds > 0 and index < len(areas) - 1:
                await self._sleep(pause_seconds)

        logger.info(
            "CDN warmup run done: scope=%s warmed=%d errors=%d",
            run_scope.value,
            result.warmed,
            len(result.errors),
        )
        return result

    async def _warm_area(self, area: WarmupScope, limit: int, concurrency: int) -> int:
        submitted = 0
        for entity, fields in SCOPE_ENTITIES[area]:
            rows = await self._source.latest(entity, limit)
            await self._engine.warm_from_fields(rows, fields, concurrency)
            submitted += count_keys(rows, fields)
        return submitted


class WarmupScheduler:
    """
    Run a ``CdnWarmupJob`` repeatedly in a background task.

    The first run starts immediately. A failing run is logged and the
    loop continues with the next interval.

    Parameters
    ----------
    job : CdnWarmupJob
        Job to run.
    interval_seconds : float
        Delay between the end of one run and the start of the next.
    """

    def __init__(self, job: CdnWarmupJob, interval_seconds: float) -> None:
        self._job = job
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop (no-op when already running)."""
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info(
                "CDN warmup scheduler started (every %.0f s)", self.interval_seconds
            )

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("CDN warmup scheduler stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self._job.run()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Scheduled CDN warmup failed: %s", e)
            self.runs += 1
            await asyncio.sleep(self.interval_seconds)
