"""HTTP client for Nominatim-compatible place search."""

from __future__ import annotations

import logging

import httpx

from ...config import settings
from ...errors import GeocodingError
from ...models.domain import GeoPoint

logger = logging.getLogger(__name__)


class NominatimClient:
    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.geocoder_base_url).rstrip("/")
        if not self.base_url:
            raise ValueError("Geocoder base URL is not configured.")
        self.user_agent = user_agent or settings.geocoder_user_agent
        self.timeout = timeout if timeout is not None else settings.geocoder_timeout_seconds
        self._transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=5.0),
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            transport=self._transport,
        )

    async def search(self, name: str) -> GeoPoint | None:
        """Resolve ``name`` to its best match, or ``None`` when the service has no result.

        Raises ``GeocodingError`` on transport failures, non-success status or
        an unreadable payload.
        """
        params = {"q": name, "format": "json", "limit": 1}
        try:
            async with self._get_client() as client:
                response = await client.get(f"{self.base_url}/search", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise GeocodingError(name, f"map service busy (HTTP {exc.response.status_code})") from exc
        except httpx.HTTPError as exc:
            raise GeocodingError(name, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise GeocodingError(name, f"unreadable response: {exc}") from exc

        if not isinstance(data, list):
            raise GeocodingError(name, "unexpected response shape")
        if not data:
            return None
        try:
            first = data[0]
            return GeoPoint(latitude=float(first["lat"]), longitude=float(first["lon"]), name=name)
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingError(name, f"result without usable coordinates: {exc}") from exc
