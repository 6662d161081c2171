"""
Pytest configuration and fixtures for cinevault tests.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import httpx
import pytest

from cinevault.config.settings import Settings
from cinevault.services.metadata_cache import MetadataCache
from cinevault.services.object_store import ObjectStoreGateway
from tests.fakes import FakeS3Client, InMemoryCacheBackend

PUBLIC_BASE_URL = "https://cdn.example.com"


@pytest.fixture
def mock_settings() -> Settings:
    """Settings with storage configured and no Redis, independent of the environment."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        redis_url="",
        r2_endpoint="https://account.r2.cloudflarestorage.com",
        r2_bucket="media",
        r2_access_key_id="test-key",
        r2_secret_access_key="test-secret",
        r2_public_base_url=PUBLIC_BASE_URL,
        cron_secret="s3cret",
    )


@pytest.fixture
def memory_backend() -> InMemoryCacheBackend:
    return InMemoryCacheBackend()


@pytest.fixture
def metadata_cache(memory_backend: InMemoryCacheBackend) -> MetadataCache:
    return MetadataCache(memory_backend)


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def object_store(metadata_cache: MetadataCache, s3_client: FakeS3Client) -> ObjectStoreGateway:
    """Gateway over the fake S3 client and the in-memory cache."""
    return ObjectStoreGateway(
        metadata_cache,
        bucket="media",
        public_base_url=PUBLIC_BASE_URL,
        client=s3_client,
    )


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Sleep replacement that returns immediately and records delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
async def http_client_factory() -> AsyncGenerator[object, None]:
    """Build ``httpx.AsyncClient`` instances over a MockTransport handler."""
    clients: list[httpx.AsyncClient] = []

    def _make(handler) -> httpx.AsyncClient:  # type: ignore[no-untyped-def]
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()
