"""
Unit tests for the cron-triggered CDN warmup endpoint.

Tests:
- Requests without the cron secret are rejected with 401
- Query parameters are parsed leniently and forwarded to the job
- Partial failures return 207 with the error list
- A crashed run returns 500 with an error body
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from cinevault.api.deps import get_settings, get_warmup_job
from cinevault.api.main import app
from cinevault.config.settings import Settings
from cinevault.models.enums import WarmupScope
from cinevault.models.media import WarmupRunResult
from cinevault.services.warmup_job import CdnWarmupJob

# CRITICAL: This line ensures async tests work with coverage
pytestmark = pytest.mark.asyncio

URL = "/api/v1/cron/cdn-warmup"
AUTH = {"Authorization": "Bearer s3cret"}


# ═══════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def warmup_job() -> MagicMock:
    mock = MagicMock(spec=CdnWarmupJob)
    mock.run = AsyncMock(
        return_value=WarmupRunResult(
            warmed=12, scope=WarmupScope.ALL, limit=400, concurrency=10
        )
    )
    return mock


@pytest.fixture
async def client(
    warmup_job: MagicMock, mock_settings: Settings
) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_warmup_job] = lambda: warmup_job
    app.dependency_overrides[get_settings] = lambda: mock_settings
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


# ═══════════════════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════════════════


class TestCronAuth:
    """Tests for the CRON_SECRET bearer check."""

    async def test_missing_header_is_401(
        self, client: AsyncClient, warmup_job: MagicMock
    ) -> None:
        response = await client.get(URL)

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        assert response.json()["code"] == "NOT_AUTHENTICATED"
        warmup_job.run.assert_not_awaited()

    async def test_wrong_secret_is_401(self, client: AsyncClient) -> None:
        response = await client.get(URL, headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    async def test_empty_secret_rejects_everything(
        self, client: AsyncClient, mock_settings: Settings
    ) -> None:
        settings = mock_settings.model_copy(update={"cron_secret": ""})
        app.dependency_overrides[get_settings] = lambda: settings

        response = await client.get(URL, headers={"Authorization": "Bearer "})

        assert response.status_code == 401


# ═══════════════════════════════════════════════════════════════════════════
# Runs
# ═══════════════════════════════════════════════════════════════════════════


class TestCronRun:
    """Tests for the run outcomes."""

    async def test_successful_run(self, client: AsyncClient, warmup_job: MagicMock) -> None:
        response = await client.get(URL, headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "warmed": 12,
            "scope": "all",
            "limit": 400,
            "concurrency": 10,
        }
        warmup_job.run.assert_awaited_once_with(scope=None, limit=None, concurrency=None)

    async def test_params_are_parsed_leniently(
        self, client: AsyncClient, warmup_job: MagicMock
    ) -> None:
        await client.get(
            URL,
            headers=AUTH,
            params={"scope": "both", "limit": "abc", "concurrency": "0"},
        )

        warmup_job.run.assert_awaited_once_with(scope="both", limit=400, concurrency=10)

    async def test_numeric_params_are_forwarded(
        self, client: AsyncClient, warmup_job: MagicMock
    ) -> None:
        await client.get(
            URL, headers=AUTH, params={"scope": "movies", "limit": "50", "concurrency": "4"}
        )

        warmup_job.run.assert_awaited_once_with(scope="movies", limit=50, concurrency=4)

    async def test_partial_failure_is_207(
        self, client: AsyncClient, warmup_job: MagicMock
    ) -> None:
        warmup_job.run.return_value = WarmupRunResult(
            warmed=3, errors=["collections: relation does not exist"]
        )

        response = await client.get(URL, headers=AUTH)

        assert response.status_code == 207
        body = response.json()
        assert body["ok"] is False
        assert body["errors"] == ["collections: relation does not exist"]

    async def test_crashed_run_is_500(
        self, client: AsyncClient, warmup_job: MagicMock
    ) -> None:
        warmup_job.run.side_effect = RuntimeError("catalog offline")

        response = await client.get(URL, headers=AUTH)

        assert response.status_code == 500
        assert response.json() == {
            "error": "CDN warmup failed",
            "message": "catalog offline",
        }
