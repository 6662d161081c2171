"""
Pure helpers for object keys, public URLs and content hashing.

Nothing here touches the network or the metadata cache, so every
function is safe to call from request handlers and warmup workers alike.
"""

from __future__ import annotations

import hashlib
import re
from typing import Union

from cinevault.models.enums import StoragePrefix, TmdbSize

_ABSOLUTE_URL_RE = re.compile(r"^https?://", re.IGNORECASE)

_CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "avif": "image/avif",
}

KeyPart = Union[str, int, StoragePrefix, TmdbSize, None]


def _part_to_str(part: KeyPart) -> str:
    if isinstance(part, (StoragePrefix, TmdbSize)):
        return part.value
    return str(part)


def normalize_key(*parts: KeyPart) -> str:
    """
    Join key segments with ``/``.

    Falsy segments are dropped, and leading/trailing slashes are stripped
    from each segment before joining. The result has no leading or
    trailing slash and ``normalize_key(normalize_key(x)) == normalize_key(x)``.

    Examples
    --------
    >>> normalize_key("tmdb", "w500", "/abc.jpg")
    'tmdb/w500/abc.jpg'
    >>> normalize_key("/uploads/", None, "", "a.png")
    'uploads/a.png'
    """
    segments = []
    for part in parts:
        if not part:
            continue
        segment = _part_to_str(part).strip("/")
        if segment:
            segments.append(segment)
    return "/".join(segments)


def tmdb_key(file_path: str, size: TmdbSize | str = TmdbSize.ORIGINAL) -> str:
    """Map a TMDb file path and size variant to its object key."""
    return normalize_key(StoragePrefix.TMDB, size, file_path)


def is_absolute_url(value: str) -> bool:
    """Check whether *value* starts with ``http://`` or ``https://``."""
    return bool(_ABSOLUTE_URL_RE.match(value))


def to_public_url(key: str | None, base_url: str) -> str | None:
    """
    Derive the public URL for an object key.

    Absolute URLs pass through unchanged, so applying this twice is safe.
    Quotes around *base_url* (a common ``.env`` mistake) and trailing
    slashes are removed. Without a base the key is returned as a
    root-relative path.

    Parameters
    ----------
    key : str | None
        Object key or an already absolute URL.
    base_url : str
        Configured public base URL of the bucket.

    Returns
    -------
    str | None
        Public URL, or ``None`` for an empty key.
    """
    if not key:
        return None
    if is_absolute_url(key):
        return key
    k = str(key).lstrip("/")
    base = base_url.strip().strip("'\"").rstrip("/")
    return f"{base}/{k}" if base else f"/{k}"


def sha256_hex(body: bytes | str) -> str:
    """Hex SHA-256 digest of *body* (strings are UTF-8 encoded)."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hashlib.sha256(body).hexdigest()


def guess_content_type(ext_or_name: str) -> str:
    """Guess an image content type from a file extension or name."""
    ext = ext_or_name.lower().rsplit(".", 1)[-1]
    return _CONTENT_TYPES.get(ext, "application/octet-stream")
