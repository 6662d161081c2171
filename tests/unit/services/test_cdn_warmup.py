"""
Unit tests for CdnWarmupEngine.

The CDN is faked with ``httpx.MockTransport``; retry sleeps are recorded
by an ``AsyncMock`` and jitter is pinned to zero.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from cinevault.exceptions import WarmupError
from cinevault.models.media import WarmOptions
from cinevault.services.cdn_warmup import (
    CdnWarmupEngine,
    WARMED_MARKER_PREFIX,
    warmed_marker_key,
)
from cinevault.services.metadata_cache import MetadataCache
from cinevault.services.storage_keys import to_public_url
from tests.fakes import InMemoryCacheBackend

# CRITICAL: This line ensures async tests work with coverage
pytestmark = pytest.mark.asyncio

CDN = "https://cdn.example.com"


def resolve(key: str) -> str | None:
    return to_public_url(key, CDN)


class CdnStub:
    """Records requests; status per path can be scripted as a list."""

    def __init__(self, statuses: dict[str, list[int | Exception]] | None = None) -> None:
        self.statuses = statuses or {}
        self.requests: list[httpx.Request] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.001)
            script = self.statuses.get(request.url.path)
            outcome: int | Exception = 200
            if script:
                outcome = script.pop(0) if len(script) > 1 else script[0]
            if isinstance(outcome, Exception):
                raise outcome
            return httpx.Response(outcome, content=b"img")
        finally:
            self.in_flight -= 1


@pytest.fixture
def make_engine(
    metadata_cache: MetadataCache,
    http_client_factory: Callable[..., httpx.AsyncClient],
    no_sleep: AsyncMock,
) -> Callable[..., CdnWarmupEngine]:
    def _make(cdn: CdnStub, **kwargs: object) -> CdnWarmupEngine:
        return CdnWarmupEngine(
            resolve,
            http_client_factory(cdn),
            metadata_cache,
            sleep=no_sleep,
            jitter=lambda: 0.0,
            **kwargs,  # type: ignore[arg-type]
        )

    return _make


class TestWarm:
    """Tests for CdnWarmupEngine.warm."""

    async def test_warms_each_distinct_url_once(
        self, make_engine: Callable[..., CdnWarmupEngine]
    ) -> None:
        cdn = CdnStub()

        result = await make_engine(cdn).warm(
            ["tmdb/w500/a.jpg", "/tmdb/w500/a.jpg", "tmdb/w500/b.jpg", None, ""]
        )

        assert sorted(r.url.path for r in cdn.requests) == [
            "/tmdb/w500/a.jpg",
            "/tmdb/w500/b.jpg",
        ]
        assert result.warmed == 2
        assert result.failed == 0

    async def test_sends_image_accept_header(
        self, make_engine: Callable[..., CdnWarmupEngine]
    ) -> None:
        cdn = CdnStub()

        await make_engine(cdn).warm(["a.jpg"])

        assert cdn.requests[0].headers["accept"] == "image/*,*/*;q=0.8"
        assert str(cdn.requests[0].url) == f"{CDN}/a.jpg"

    async def test_relative_urls_are_dropped(
        self,
        metadata_cache: MetadataCache,
        http_client_factory: Callable[..., httpx.AsyncClient],
    ) -> None:
        cdn = CdnStub()
        engine = CdnWarmupEngine(
            lambda key: to_public_url(key, ""), http_client_factory(cdn), metadata_cache
        )

        result = await engine.warm(["a.jpg", "https://other.example.com/b.jpg"])

        assert [str(r.url) for r in cdn.requests] == ["https://other.example.com/b.jpg"]
        assert result.unresolved == 1

    async def test_empty_input_makes_no_requests(
        self, make_engine: Callable[..., CdnWarmupEngine]
    ) -> None:
        cdn = CdnStub()

        result = await make_engine(cdn).warm([])

        assert cdn.requests == []
        assert result.requested == 0

    async def test_concurrency_is_bounded(
        self, make_engine: Callable[..., CdnWarmupEngine]
    ) -> None:
        cdn = CdnStub()
        keys = [f"tmdb/w500/{n}.jpg" for n in range(50)]

        result = await make_engine(cdn).warm(keys, concurrency=5)

        assert len(cdn.requests) == 50
        assert 1 <= cdn.max_in_flight <= 5
        assert result.warmed == 50

    async def test_batches_pause_between_each_other(
        self, make_engine: Callable[..., CdnWarmupEngine], no_sleep: AsyncMock
    ) -> None:
        cdn = CdnStub()
        keys = [f"{n}.jpg" for n in range(25)]

        await make_engine(cdn, batch_size=10, batch_pause=0.5).warm(keys, concurrency=4)

        assert len(cdn.requests) == 25
        assert [c.args[0] for c in no_sleep.await_args_list] == [0.5, 0.5]

    async def test_url_cap_per_run(self, make_engine: Callable[..., CdnWarmupEngine]) -> None:
        cdn = CdnStub()

        await make_engine(cdn, max_urls_per_run=3).warm([f"{n}.jpg" for n in range(10)])

        assert len(cdn.requests) == 3


class TestRetries:
    """Tests for per-URL retry and failure isolation."""

    async def test_retries_server_errors_then_succeeds(
        self, make_engine: Callable[..., CdnWarmupEngine], no_sleep: AsyncMock
    ) -> None:
        cdn = CdnStub({"/a.jpg": [503, 429, 200]})

        result = await make_engine(cdn).warm(
            ["a.jpg"], options=WarmOptions(retries=2, backoff_base_ms=500)
        )

        assert result.warmed == 1
        assert len(cdn.requests) == 3
        assert [c.args[0] for c in no_sleep.await_args_list] == [0.5, 1.0]

    async def test_network_errors_are_retried(
        self, make_engine: Callable[..., CdnWarmupEngine]
    ) -> None:
        cdn = CdnStub({"/a.jpg": [httpx.ConnectError("reset"), httpx.ReadTimeout("t"), 304]})

        result = await make_engine(cdn).warm(["a.jpg"], options=WarmOptions(retries=2))

        assert result.warmed == 1
        assert len(cdn.requests) == 3

    async def test_dropped_keepalive_connection_is_retried(
        self, make_engine: Callable[..., CdnWarmupEngine], no_sleep: AsyncMock
    ) -> None:
        cdn = CdnStub(
            {"/a.jpg": [httpx.RemoteProtocolError("Server disconnected"), 200]}
        )

        result = await make_engine(cdn).warm(
            ["a.jpg"], options=WarmOptions(retries=2, backoff_base_ms=500)
        )

        assert result.warmed == 1
        assert result.failed == 0
        assert len(cdn.requests) == 2
        assert [c.args[0] for c in no_sleep.await_args_list] == [0.5]

    async def test_client_error_is_not_retried(
        self,
        make_engine: Callable[..., CdnWarmupEngine],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        cdn = CdnStub({"/a.jpg": [404]})

        with caplog.at_level("WARNING", logger="cinevault.services.cdn_warmup"):
            result = await make_engine(cdn).warm(
                ["a.jpg"], options=WarmOptions(retries=3)
            )

        assert len(cdn.requests) == 1
        assert result.failed == 1
        assert "HTTP 404" in caplog.text
        assert "after retries" not in caplog.text

    async def test_warm_url_raises_once_network_budget_is_spent(
        self, make_engine: Callable[..., CdnWarmupEngine]
    ) -> None:
        cdn = CdnStub({"/a.jpg": [httpx.RemoteProtocolError("Server disconnected")]})

        with pytest.raises(WarmupError, match="RemoteProtocolError"):
            await make_engine(cdn).warm_url(
                f"{CDN}/a.jpg", WarmOptions(retries=1)
            )

        assert len(cdn.requests) == 2

    async def test_failing_url_does_not_abort_the_rest(
        self, make_engine: Callable[..., CdnWarmupEngine]
    ) -> None:
        cdn = CdnStub({"/bad.jpg": [500]})

        result = await make_engine(cdn).warm(
            ["bad.jpg", "good1.jpg", "good2.jpg"], options=WarmOptions(retries=1)
        )

        assert result.failed == 1
        assert result.warmed == 2
        assert len([r for r in cdn.requests if r.url.path == "/bad.jpg"]) == 2

    async def test_backoff_is_capped_at_ten_seconds(
        self, make_engine: Callable[..., CdnWarmupEngine], no_sleep: AsyncMock
    ) -> None:
        cdn = CdnStub({"/a.jpg": [500]})

        await make_engine(cdn).warm(
            ["a.jpg"], options=WarmOptions(retries=3, backoff_base_ms=8000)
        )

        assert [c.args[0] for c in no_sleep.await_args_list] == [8.0, 10.0, 10.0]


class TestSkipRecentlyWarmed:
    """Tests for the recently-warmed marker."""

    async def test_second_warm_is_skipped(
        self,
        make_engine: Callable[..., CdnWarmupEngine],
        memory_backend: InMemoryCacheBackend,
    ) -> None:
        cdn = CdnStub()
        engine = make_engine(cdn)
        options = WarmOptions(skip_recently_warmed_ttl_seconds=600)

        first = await engine.warm(["a.jpg"], options=options)
        second = await engine.warm(["a.jpg"], options=options)

        assert len(cdn.requests) == 1
        assert (first.warmed, second.skipped) == (1, 1)
        assert memory_backend.ttls[warmed_marker_key(f"{CDN}/a.jpg")] == 600

    async def test_no_marker_without_ttl(
        self,
        make_engine: Callable[..., CdnWarmupEngine],
        memory_backend: InMemoryCacheBackend,
    ) -> None:
        cdn = CdnStub()
        engine = make_engine(cdn)

        await engine.warm(["a.jpg"])
        await engine.warm(["a.jpg"])

        assert len(cdn.requests) == 2
        assert not any(k.startswith(WARMED_MARKER_PREFIX) for k in memory_backend.data)

    async def test_failed_url_sets_no_marker(
        self,
        make_engine: Callable[..., CdnWarmupEngine],
        memory_backend: InMemoryCacheBackend,
    ) -> None:
        cdn = CdnStub({"/a.jpg": [404]})

        await make_engine(cdn).warm(
            ["a.jpg"], options=WarmOptions(skip_recently_warmed_ttl_seconds=600)
        )

        assert warmed_marker_key(f"{CDN}/a.jpg") not in memory_backend.data

    async def test_cache_down_still_warms(
        self,
        make_engine: Callable[..., CdnWarmupEngine],
        memory_backend: InMemoryCacheBackend,
    ) -> None:
        memory_backend.fail = True
        cdn = CdnStub()

        result = await make_engine(cdn).warm(
            ["a.jpg"], options=WarmOptions(skip_recently_warmed_ttl_seconds=600)
        )

        assert result.warmed == 1


class TestRecordHelpers:
    """Tests for warm_from_records and warm_from_fields."""

    async def test_warm_from_records_uses_artwork_fields(
        self, make_engine: Callable[..., CdnWarmupEngine]
    ) -> None:
        cdn = CdnStub()
        records = [
            {"posterUrl": "p1.jpg", "backdropUrl": None, "title": "ignored.jpg"},
            {"posterUrl": "", "backdropUrl": "b2.jpg", "coverUrl": "c2.jpg"},
        ]

        await make_engine(cdn).warm_from_records(records)

        assert sorted(r.url.path for r in cdn.requests) == ["/b2.jpg", "/c2.jpg", "/p1.jpg"]

    async def test_warm_from_fields(self, make_engine: Callable[..., CdnWarmupEngine]) -> None:
        cdn = CdnStub()

        await make_engine(cdn).warm_from_fields(
            [{"stillUrl": "s1.jpg"}, {"stillUrl": "  "}], ["stillUrl"]
        )

        assert [r.url.path for r in cdn.requests] == ["/s1.jpg"]
