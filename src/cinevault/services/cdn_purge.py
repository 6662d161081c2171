"""
Cloudflare cache purge client.

Evicts single files from the Cloudflare edge after their object changed
in the bucket, so the next request goes back to the origin.
"""

from __future__ import annotations

import logging

import httpx

from cinevault.config.settings import Settings

logger = logging.getLogger(__name__)

CLOUDFLARE_API_BASE = "https://api.cloudflare.com/client/v4"


class CloudflarePurgeClient:
    """
    Purge public URLs from the Cloudflare cache of one zone.

    Purging is best effort: a missing token or zone skips the call, and
    any failure is logged and reported as ``False``.

    Parameters
    ----------
    http_client : httpx.AsyncClient
        Shared HTTP client.
    api_token : str
        Cloudflare API token with cache-purge permission.
    zone_id : str
        Zone that serves the public bucket hostname.
    api_base : str
        Cloudflare API base URL.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_token: str = "",
        zone_id: str = "",
        api_base: str = CLOUDFLARE_API_BASE,
    ) -> None:
        self._http = http_client
        self._api_token = api_token
        self._zone_id = zone_id
        self._api_base = api_base.rstrip("/")

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient
    ) -> CloudflarePurgeClient:
        return cls(
            http_client,
            api_token=settings.cloudflare_api_token,
            zone_id=settings.cloudflare_zone_id,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._api_token and self._zone_id)

    async def purge(self, url: str) -> bool:
        """
        Purge a single public URL.

        Parameters
        ----------
        url : str
            Full public URL, e.g. ``https://cdn.example.com/uploads/users/avatars/1.png``.

        Returns
        -------
        bool
            ``True`` if Cloudflare confirmed the purge, ``False`` when
            skipped or failed.
        """
        if not self.is_configured:
            logger.debug("Cloudflare purge skipped for %s: token or zone missing", url)
            return False

        endpoint = f"{self._api_base}/zones/{self._zone_id}/purge_cache"
        try:
            response = await self._http.post(
                endpoint,
                headers={"Authorization": f"Bearer {self._api_token}"},
                json={"files": [url]},
            )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Cloudflare purge failed for %s: %s", url, e)
            return False

        if isinstance(data, dict) and data.get("success"):
            logger.info("Purged %s from Cloudflare cache", url)
            return True

        errors = data.get("errors") if isinstance(data, dict) else data
        logger.warning("Cloudflare purge rejected for %s: %s", url, errors)
        return False
