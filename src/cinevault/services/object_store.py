"""
Object store gateway for S3-compatible storage (Cloudflare R2).

Wraps a boto3 S3 client with key namespacing, cached existence checks,
content-hash deduplicated uploads, deletion and cached signed URLs.
Blocking boto3 calls run in worker threads so the gateway can be shared
by many concurrent request handlers.

"Not found" from the store is a normal outcome and is returned as
``None`` / ``False``; any other client failure is raised as
``ObjectStoreError``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from functools import partial
from typing import Any

from boto3.session import Session
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from cinevault.config.settings import Settings
from cinevault.exceptions import ObjectStoreError, StorageNotConfiguredError
from cinevault.models.media import ObjectHead
from cinevault.services.metadata_cache import MetadataCache
from cinevault.services.storage_keys import sha256_hex, to_public_url

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Metadata cache namespaces
# ---------------------------------------------------------------------------
EXISTS_CACHE_PREFIX = "r2:exists:"
KNOWN_CACHED_PREFIX = "r2:tmdb:"
SIGNED_URL_CACHE_PREFIX = "r2:signed:"

# Object metadata field carrying the hex SHA-256 of the body
HASH_METADATA_KEY = "cv-sha256"

DEFAULT_SIGNED_URL_EXPIRY = 3600
_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def exists_cache_key(key: str) -> str:
    """Metadata-cache key of the existence flag for *key*."""
    return f"{EXISTS_CACHE_PREFIX}{key}"


def known_cached_key(key: str) -> str:
    """Metadata-cache key of the long-lived "known cached" hint for *key*."""
    return f"{KNOWN_CACHED_PREFIX}{key}"


def signed_url_cache_key(key: str, expires_in: int) -> str:
    """Metadata-cache key of a cached signed URL."""
    return f"{SIGNED_URL_CACHE_PREFIX}{key}:{expires_in}"


def is_not_found(error: ClientError) -> bool:
    """Check whether a boto3 ``ClientError`` means the object is absent."""
    code = str(error.response.get("Error", {}).get("Code", ""))
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in _NOT_FOUND_CODES or status == 404


def build_s3_client(settings: Settings) -> Any:
    """
    Create a boto3 S3 client from the R2 settings.

    Raises
    ------
    StorageNotConfiguredError
        If endpoint, bucket or credentials are missing.
    """
    if not settings.is_storage_configured:
        raise StorageNotConfiguredError()

    session = Session()
    return session.client(
        "s3",
        endpoint_url=settings.r2_endpoint,
        region_name=settings.r2_region,
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        config=BotoConfig(
            signature_version="s3v4",
            s3={"addressing_style": "path" if settings.r2_force_path_style else "auto"},
            connect_timeout=10,
            read_timeout=30,
            retries={"max_attempts": 3, "mode": "standard"},
        ),
    )


async def _run_sync(func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    return await asyncio.to_thread(func, *args, **kwargs)


class ObjectStoreGateway:
    """
    Gateway to the media bucket, mediated by the metadata cache.

    Parameters
    ----------
    cache : MetadataCache
        Shared metadata cache for existence flags and signed URLs.
    bucket : str
        Bucket name.
    public_base_url : str
        Public base URL of the bucket (CDN hostname).
    client : Any | None
        Ready boto3 S3 client. Mutually exclusive with *client_factory*.
    client_factory : Callable[[], Any] | None
        Called once on first use to build the client.
    exists_ttl : int
        TTL in seconds of positive and negative existence flags.
    known_cached_ttl : int
        TTL in seconds of the "known cached" hint.
    signed_url_margin : int
        Seconds subtracted from a signed URL's expiry for its cache TTL.
    """

    def __init__(
        self,
        cache: MetadataCache,
        *,
        bucket: str,
        public_base_url: str = "",
        client: Any | None = None,
        client_factory: Callable[[], Any] | None = None,
        exists_ttl: int = 300,
        known_cached_ttl: int = 86400,
        signed_url_margin: int = 120,
    ) -> None:
        self._cache = cache
        self._bucket = bucket
        self._public_base_url = public_base_url
        self._client = client
        self._client_factory = client_factory
        self.exists_ttl = exists_ttl
        self.known_cached_ttl = known_cached_ttl
        self.signed_url_margin = signed_url_margin

    @classmethod
    def from_settings(cls, settings: Settings, cache: MetadataCache) -> ObjectStoreGateway:
        """Build a gateway whose client is created lazily from *settings*."""
        return cls(
            cache,
            bucket=settings.r2_bucket,
            public_base_url=settings.r2_public_base_url,
            client_factory=(
                partial(build_s3_client, settings)
                if settings.is_storage_configured
                else None
            ),
            exists_ttl=settings.exists_cache_ttl,
            known_cached_ttl=settings.tmdb_known_cache_ttl,
            signed_url_margin=settings.signed_url_cache_margin,
        )

    # ------------------------------------------------------------------
    # Client management
    # ------------------------------------------------------------------

    @property
    def is_configured(self) -> bool:
        """Whether a client is available or can be built."""
        return bool(self._bucket) and (
            self._client is not None or self._client_factory is not None
        )

    @property
    def client(self) -> Any:
        """The boto3 client, created on first access."""
        if self._client is None:
            if self._client_factory is None or not self._bucket:
                raise StorageNotConfiguredError()
            self._client = self._client_factory()
        return self._client

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def public_url(self, key: str | None) -> str | None:
        """Public URL of *key*; pure and cache-free."""
        return to_public_url(key, self._public_base_url)

    async def signed_url(
        self, key: str, expires_in: int = DEFAULT_SIGNED_URL_EXPIRY
    ) -> str:
        """
        Issue a presigned GET URL, cached slightly shorter than it lives.

        Parameters
        ----------
        key : str
            Object key.
        expires_in : int
            URL lifetime in seconds.

        Returns
        -------
        str
            Presigned URL.
        """
        cache_key = signed_url_cache_key(key, expires_in)
        # Short-lived URLs keep half their lifetime rather than going negative
        ttl = max(expires_in - self.signed_url_margin, expires_in // 2)

        async def _presign() -> str:
            try:
                return await _run_sync(
                    self.client.generate_presigned_url,
                    "get_object",
                    Params={"Bucket": self._bucket, "Key": key},
                    ExpiresIn=expires_in,
                )
            except (ClientError, BotoCoreError) as e:
                raise ObjectStoreError(
                    f"Failed to presign {key}: {e}", key=key, original_error=e
                ) from e

        if ttl < 1:
            return await _presign()
        url = await self._cache.get_or_set(cache_key, ttl, _presign)
        return str(url)

    # ------------------------------------------------------------------
    # HEAD / exists
    # ------------------------------------------------------------------

    async def head(self, key: str) -> ObjectHead | None:
        """HEAD the object; ``None`` when it does not exist."""
        try:
            response = await _run_sync(
                self.client.head_object, Bucket=self._bucket, Key=key
            )
        except ClientError as e:
            if is_not_found(e):
                return None
            raise ObjectStoreError(
                f"HEAD failed for {key}: {e}", key=key, original_error=e
            ) from e
        except BotoCoreError as e:
            raise ObjectStoreError(
                f"HEAD failed for {key}: {e}", key=key, original_error=e
            ) from e

        metadata = {
            str(k).lower(): str(v) for k, v in (response.get("Metadata") or {}).items()
        }
        return ObjectHead(
            key=key,
            content_type=response.get("ContentType"),
            content_length=response.get("ContentLength"),
            etag=response.get("ETag"),
            cache_control=response.get("CacheControl"),
            metadata=metadata,
        )

    async def exists(self, key: str) -> bool:
        """
        Check existence through the cached flag, falling back to HEAD.

        Both positive and negative HEAD results are cached for
        ``exists_ttl`` seconds.
        """
        cache_key = exists_cache_key(key)
        cached = await self._cache.get(cache_key)
        if cached == "1":
            return True
        if cached == "0":
            return False

        result = await self.head(key) is not None
        await self._cache.set(cache_key, "1" if result else "0", self.exists_ttl)
        return result

    async def invalidate_exists(self, key: str) -> None:
        """Drop the cached existence flag of *key*."""
        await self._cache.delete(exists_cache_key(key))

    # ------------------------------------------------------------------
    # "Known cached" hint used by the pull-through cache
    # ------------------------------------------------------------------

    async def is_known_cached(self, key: str) -> bool:
        """
        Check the long-lived "known cached" hint, deriving it when absent.

        A missing hint falls back to ``exists``; a positive answer is then
        remembered for ``known_cached_ttl`` seconds.
        """
        if await self._cache.get(known_cached_key(key)) == "1":
            return True
        result = await self.exists(key)
        if result:
            await self.mark_known_cached(key)
        return result

    async def mark_known_cached(self, key: str) -> None:
        """Record that *key* is present in the bucket."""
        await self._cache.set(known_cached_key(key), "1", self.known_cached_ttl)

    async def forget_known_cached(self, key: str) -> None:
        """Drop the "known cached" hint and the existence flag of *key*."""
        await self._cache.delete(known_cached_key(key))
        await self.invalidate_exists(key)

    async def invalidate(
        self,
        key: str,
        signed_url_expiries: Iterable[int] = (DEFAULT_SIGNED_URL_EXPIRY,),
    ) -> None:
        """
        Drop every metadata-cache entry derived from *key*.

        Applications call this after changing an object out-of-band, so
        the next lookup re-derives truth from the store.
        """
        await self.forget_known_cached(key)
        for expires_in in signed_url_expiries:
            await self._cache.delete(signed_url_cache_key(key, expires_in))
        logger.debug("Invalidated cache entries for %s", key)

    # ------------------------------------------------------------------
    # Put / Get / Delete
    # ------------------------------------------------------------------

    async def put(
        self,
        key: str,
        body: bytes | str,
        content_type: str | None = None,
        cache_control: str | None = None,
        content_hash: str | None = None,
        skip_if_same_hash: bool = False,
        extra_metadata: Mapping[str, Any] | None = None,
    ) -> bool:
        """
        Upload *body* under *key* with its content hash as metadata.

        Parameters
        ----------
        key : str
            Object key.
        body : bytes | str
            Object body (strings are UTF-8 encoded).
        content_type : str | None
            ``Content-Type`` to store.
        cache_control : str | None
            ``Cache-Control`` directive to store.
        content_hash : str | None
            Hex SHA-256 of *body*; computed when omitted.
        skip_if_same_hash : bool
            HEAD first and skip the upload when the stored hash matches.
        extra_metadata : Mapping[str, Any] | None
            Additional metadata; keys are lower-cased.

        Returns
        -------
        bool
            ``True`` if the object was written, ``False`` if skipped.
        """
        data = body.encode("utf-8") if isinstance(body, str) else body
        digest = content_hash or sha256_hex(data)

        if skip_if_same_hash:
            existing = await self.head(key)
            if existing is not None and existing.metadata.get(HASH_METADATA_KEY) == digest:
                logger.debug("Skipping upload of %s: identical SHA-256", key)
                return False

        metadata = {HASH_METADATA_KEY: digest}
        for k, v in (extra_metadata or {}).items():
            metadata[str(k).lower()] = str(v)

        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": data,
            "Metadata": metadata,
        }
        if content_type:
            params["ContentType"] = content_type
        if cache_control:
            params["CacheControl"] = cache_control

        try:
            await _run_sync(self.client.put_object, **params)
        except (ClientError, BotoCoreError) as e:
            raise ObjectStoreError(
                f"PUT failed for {key}: {e}", key=key, original_error=e
            ) from e

        await self.invalidate_exists(key)
        logger.info("Stored object %s (%d bytes)", key, len(data))
        return True

    async def get(self, key: str) -> bytes | None:
        """Fetch and fully drain the object body; ``None`` when absent."""
        try:
            response = await _run_sync(
                self.client.get_object, Bucket=self._bucket, Key=key
            )
        except ClientError as e:
            if is_not_found(e):
                return None
            raise ObjectStoreError(
                f"GET failed for {key}: {e}", key=key, original_error=e
            ) from e
        except BotoCoreError as e:
            raise ObjectStoreError(
                f"GET failed for {key}: {e}", key=key, original_error=e
            ) from e

        stream = response.get("Body")
        if stream is None:
            return None
        try:
            return bytes(await _run_sync(stream.read))
        finally:
            await _run_sync(stream.close)

    async def delete(self, key: str) -> None:
        """Delete the object and drop its existence flag."""
        try:
            await _run_sync(self.client.delete_object, Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise ObjectStoreError(
                f"DELETE failed for {key}: {e}", key=key, original_error=e
            ) from e
        await self.invalidate_exists(key)
        logger.info("Deleted object %s", key)
