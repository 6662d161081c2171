"""
User media uploads (avatars and banners).

User media live under a fixed key per user, so replacing an image
overwrites the same key. The CDN copy is purged after every real change;
re-uploading identical bytes is a no-op.
"""

from __future__ import annotations

import logging

from cinevault.models.enums import StoragePrefix
from cinevault.services.cdn_purge import CloudflarePurgeClient
from cinevault.services.object_store import HASH_METADATA_KEY, ObjectStoreGateway
from cinevault.services.storage_keys import (
    guess_content_type,
    is_absolute_url,
    normalize_key,
    sha256_hex,
)

logger = logging.getLogger(__name__)

# Browsers revalidate on every view; the edge copy is purged on change
CACHE_CONTROL_USER_MEDIA = "public, max-age=0, must-revalidate"


class MediaUploadService:
    """
    Store user-provided media with hash deduplication and CDN purge.

    Parameters
    ----------
    store : ObjectStoreGateway
        Gateway to the media bucket.
    purger : CloudflarePurgeClient
        Client used to evict the previous edge copy.
    """

    def __init__(self, store: ObjectStoreGateway, purger: CloudflarePurgeClient) -> None:
        self._store = store
        self._purger = purger

    async def save_user_media(
        self,
        user_id: int | str,
        data: bytes | str,
        ext: str,
        prefix: StoragePrefix | str,
        content_type: str | None = None,
    ) -> str:
        """
        Save a user's media file under ``<prefix>/<user_id>.<ext>``.

        Flow:
        1. Build the key and hash the body.
        2. Identical stored hash -> return without writing.
        3. Different object present -> delete it first.
        4. Upload with ``must-revalidate`` caching.
        5. Purge the public URL from the CDN.

        Parameters
        ----------
        user_id : int | str
            Owner of the media.
        data : bytes | str
            File contents.
        ext : str
            File extension, with or without the leading dot.
        prefix : StoragePrefix | str
            Key namespace, e.g. ``StoragePrefix.USER_AVATARS``.
        content_type : str | None
            Explicit content type; guessed from *ext* when omitted.

        Returns
        -------
        str
            The object key.
        """
        clean_ext = ext.lstrip(".")
        key = normalize_key(prefix, f"{user_id}.{clean_ext}")
        body = data.encode("utf-8") if isinstance(data, str) else data
        digest = sha256_hex(body)

        existing = await self._store.head(key)
        if existing is not None and existing.metadata.get(HASH_METADATA_KEY) == digest:
            logger.debug("User media unchanged, skipping upload: %s", key)
            return key
        if existing is not None:
            await self._store.delete(key)

        await self._store.put(
            key,
            body,
            content_type=content_type or guess_content_type(clean_ext),
            cache_control=CACHE_CONTROL_USER_MEDIA,
            content_hash=digest,
        )

        public_url = self._store.public_url(key)
        if public_url and is_absolute_url(public_url):
            await self._purger.purge(public_url)
        return key

    async def save_user_avatar(
        self,
        user_id: int | str,
        data: bytes | str,
        ext: str,
        content_type: str | None = None,
    ) -> str:
        """Save a user's avatar image."""
        return await self.save_user_media(
            user_id, data, ext, StoragePrefix.USER_AVATARS, content_type
        )

    async def save_user_banner(
        self,
        user_id: int | str,
        data: bytes | str,
        ext: str,
        content_type: str | None = None,
    ) -> str:
        """Save a user's profile banner image."""
        return await self.save_user_media(
            user_id, data, ext, StoragePrefix.USER_BANNERS, content_type
        )
