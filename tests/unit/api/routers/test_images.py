"""
Unit tests for the TMDb image pull-through endpoint.

Tests:
- Stored image redirects (307) to its public URL
- Origin failure redirects to the placeholder when one is configured
- Origin failure without placeholder returns a 502 problem response
- Missing object storage returns 503
- Unknown size variants and blank file paths are rejected with 422
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from cinevault.api.deps import get_media_cache, get_object_store, get_settings
from cinevault.api.main import app
from cinevault.config.settings import Settings
from cinevault.exceptions import OriginFetchError
from cinevault.models.enums import TmdbSize
from cinevault.models.media import RemoteMediaDescriptor
from cinevault.services.metadata_cache import MetadataCache
from cinevault.services.object_store import ObjectStoreGateway
from cinevault.services.pull_through import PullThroughMediaCache

# CRITICAL: This line ensures async tests work with coverage
pytestmark = pytest.mark.asyncio

PLACEHOLDER = "static/placeholder-poster.png"


# ═══════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def media_cache() -> MagicMock:
    mock = MagicMock(spec=PullThroughMediaCache)
    mock.ensure_cached = AsyncMock(return_value="tmdb/w500/abc.jpg")
    return mock


@pytest.fixture
async def client(
    media_cache: MagicMock,
    object_store: ObjectStoreGateway,
    mock_settings: Settings,
) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_media_cache] = lambda: media_cache
    app.dependency_overrides[get_object_store] = lambda: object_store
    app.dependency_overrides[get_settings] = lambda: mock_settings
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


# ═══════════════════════════════════════════════════════════════════════════
# Redirects
# ═══════════════════════════════════════════════════════════════════════════


class TestRedirect:
    """Tests for the happy path."""

    async def test_redirects_to_public_url(
        self, client: AsyncClient, media_cache: MagicMock
    ) -> None:
        response = await client.get("/api/v1/images/tmdb/w500/abc.jpg")

        assert response.status_code == 307
        assert response.headers["location"] == "https://cdn.example.com/tmdb/w500/abc.jpg"
        media_cache.ensure_cached.assert_awaited_once_with(
            RemoteMediaDescriptor(file_path="abc.jpg", size=TmdbSize.W500)
        )

    async def test_nested_file_path_is_kept(
        self, client: AsyncClient, media_cache: MagicMock
    ) -> None:
        media_cache.ensure_cached.return_value = "tmdb/original/dir/x.png"

        response = await client.get("/api/v1/images/tmdb/original/dir/x.png")

        assert response.status_code == 307
        descriptor = media_cache.ensure_cached.await_args.args[0]
        assert descriptor.file_path == "dir/x.png"
        assert descriptor.size == TmdbSize.ORIGINAL

    async def test_relative_redirect_without_public_base(
        self, client: AsyncClient, metadata_cache: MetadataCache, s3_client: object
    ) -> None:
        store = ObjectStoreGateway(metadata_cache, bucket="media", client=s3_client)
        app.dependency_overrides[get_object_store] = lambda: store

        response = await client.get("/api/v1/images/tmdb/w500/abc.jpg")

        assert response.headers["location"] == "/tmdb/w500/abc.jpg"


# ═══════════════════════════════════════════════════════════════════════════
# Failures
# ═══════════════════════════════════════════════════════════════════════════


class TestFailures:
    """Tests for origin and configuration failures."""

    async def test_origin_failure_uses_placeholder(
        self, client: AsyncClient, media_cache: MagicMock, mock_settings: Settings
    ) -> None:
        media_cache.ensure_cached.side_effect = OriginFetchError("https://origin/abc.jpg", 3)
        settings = mock_settings.model_copy(update={"placeholder_key": PLACEHOLDER})
        app.dependency_overrides[get_settings] = lambda: settings

        response = await client.get("/api/v1/images/tmdb/w500/abc.jpg")

        assert response.status_code == 307
        assert response.headers["location"] == f"https://cdn.example.com/{PLACEHOLDER}"

    async def test_origin_failure_without_placeholder_is_502(
        self, client: AsyncClient, media_cache: MagicMock
    ) -> None:
        media_cache.ensure_cached.side_effect = OriginFetchError("https://origin/abc.jpg", 3)

        response = await client.get("/api/v1/images/tmdb/w500/abc.jpg")

        assert response.status_code == 502
        assert response.headers["content-type"] == "application/problem+json"
        body = response.json()
        assert body["code"] == "EXTERNAL_SERVICE_ERROR"
        assert body["detail"] == "Image origin unavailable"
        assert "origin" not in body["instance"]

    async def test_unconfigured_storage_is_503(
        self, client: AsyncClient, media_cache: MagicMock, metadata_cache: MetadataCache
    ) -> None:
        store = ObjectStoreGateway(metadata_cache, bucket="")
        app.dependency_overrides[get_object_store] = lambda: store

        response = await client.get("/api/v1/images/tmdb/w500/abc.jpg")

        assert response.status_code == 503
        assert response.json()["code"] == "SERVICE_UNAVAILABLE"
        media_cache.ensure_cached.assert_not_awaited()

    async def test_unknown_size_is_422(
        self, client: AsyncClient, media_cache: MagicMock
    ) -> None:
        response = await client.get("/api/v1/images/tmdb/w9999/abc.jpg")

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        media_cache.ensure_cached.assert_not_awaited()

    async def test_blank_file_path_is_422(
        self, client: AsyncClient, media_cache: MagicMock
    ) -> None:
        response = await client.get("/api/v1/images/tmdb/w500/%20")

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "file_path" in body["detail"]
        media_cache.ensure_cached.assert_not_awaited()
