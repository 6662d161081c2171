"""TMDb image pull-through endpoint.

- GET /images/tmdb/{size}/{file_path} - Mirror a TMDb image into object
  storage on first request and redirect to its public URL (public)

On an origin failure the client is redirected to the configured
placeholder image, or gets a 502 when none is configured.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Path
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import RedirectResponse

from cinevault.api.deps import get_media_cache, get_object_store, get_settings
from cinevault.config.settings import Settings
from cinevault.exceptions import OriginFetchError, StorageNotConfiguredError
from cinevault.models.enums import TmdbSize
from cinevault.models.media import RemoteMediaDescriptor
from cinevault.services.object_store import ObjectStoreGateway
from cinevault.services.pull_through import PullThroughMediaCache

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Router - no auth dependency (images are public)
# ---------------------------------------------------------------------------
router = APIRouter(tags=["images"])


@router.get(
    "/images/tmdb/{size}/{file_path:path}",
    status_code=307,
    responses={
        307: {"description": "Redirect to the stored image (or placeholder)"},
        502: {"description": "Image origin unavailable and no placeholder configured"},
        503: {"description": "Object storage not configured"},
    },
    response_class=RedirectResponse,
)
async def get_tmdb_image(
    size: TmdbSize = Path(..., description="TMDb size variant, e.g. w500"),
    file_path: str = Path(..., description="TMDb file path, e.g. abc.jpg"),
    media_cache: PullThroughMediaCache = Depends(get_media_cache),
    store: ObjectStoreGateway = Depends(get_object_store),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Ensure a TMDb image is stored and redirect to its public URL.

    Parameters
    ----------
    size : TmdbSize
        Size variant at the origin.
    file_path : str
        TMDb file path; leading slashes are ignored.

    Returns
    -------
    RedirectResponse
        307 redirect to the public URL of the stored object.

    Raises
    ------
    RequestValidationError
        If the file path is blank once slashes are stripped (mapped to 422).
    StorageNotConfiguredError
        If object storage is not configured (mapped to 503).
    OriginFetchError
        If the origin failed and no placeholder is configured (mapped to 502).
    """
    if not store.is_configured:
        raise StorageNotConfiguredError()

    try:
        descriptor = RemoteMediaDescriptor(file_path=file_path, size=size)
    except ValidationError as e:
        raise RequestValidationError(
            [
                {**error, "loc": ("path", *error["loc"])}
                for error in e.errors(include_url=False, include_context=False)
            ]
        ) from e

    try:
        key = await media_cache.ensure_cached(descriptor)
    except OriginFetchError:
        if not settings.placeholder_key:
            raise
        logger.warning(
            "Serving placeholder for %s/%s", size.value, descriptor.file_path
        )
        key = settings.placeholder_key

    url = store.public_url(key) or f"/{key}"
    return RedirectResponse(url=url, status_code=307)
