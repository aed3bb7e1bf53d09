"""
Address to coordinate resolution.

GoogleGeocodingProvider talks to the Google Geocoding API over a shared
httpx.AsyncClient. RequestGeocoder wraps any provider with a cache that
lives for a single suggestion request.
"""

import asyncio
import logging
from typing import Optional, Protocol

import httpx

from src.config import ProviderConfig
from src.errors import GeocodingError
from src.schemas.scheduling_schema import Coordinate, Location
from src.utils import normalize_address

logger = logging.getLogger(__name__)


class GeocodingProvider(Protocol):
    async def geocode(self, address: str) -> Coordinate:
        """Resolve an address, raising GeocodingError on failure."""
        ...


class GoogleGeocodingProvider:
    """Google Geocoding API client."""

    def __init__(self, client: httpx.AsyncClient, config: ProviderConfig) -> None:
        self.client = client
        self.config = config

    async def geocode(self, address: str) -> Coordinate:
        if not address.strip():
            raise GeocodingError("Empty address")
        try:
            response = await self.client.get(
                f"{self.config.google_maps_base_url}/geocode/json",
                params={
                    "address": address,
                    "key": self.config.google_maps_api_key,
                    "language": "sv",
                },
                timeout=self.config.http_timeout_sec,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise GeocodingError(f"Geocoding request failed for {address!r}: {exc}") from exc

        if data.get("status") != "OK" or not data.get("results"):
            raise GeocodingError(
                f"Geocoding returned {data.get('status', 'no status')} for {address!r}"
            )
        location = data["results"][0]["geometry"]["location"]
        return Coordinate(lat=location["lat"], lng=location["lng"])


class RequestGeocoder:
    """
    Request-scoped geocoding cache.

    Results (including failures) are remembered per normalized address so
    every candidate sharing an origin costs one external call at most.
    Concurrent lookups of the same address share one in-flight task.
    """

    def __init__(
        self, provider: Optional[GeocodingProvider], timeout_sec: Optional[float] = None
    ) -> None:
        self.provider = provider
        self.timeout_sec = timeout_sec
        self._tasks: dict[str, asyncio.Task] = {}

    async def resolve(self, location: Location) -> Optional[Coordinate]:
        """Return the location's coordinate, geocoding the address if needed."""
        if location.coordinate is not None:
            return location.coordinate
        if not location.address or self.provider is None:
            return None

        key = normalize_address(location.address)
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._lookup(location.address))
            self._tasks[key] = task
        return await asyncio.shield(task)

    async def _lookup(self, address: str) -> Optional[Coordinate]:
        try:
            return await asyncio.wait_for(self.provider.geocode(address), self.timeout_sec)
        except GeocodingError as exc:
            logger.warning("Geocoding failed: %s", exc)
            return None
        except asyncio.TimeoutError:
            logger.warning("Geocoding timed out for %r", address)
            return None

    @property
    def lookups(self) -> int:
        return len(self._tasks)

    def cancel_pending(self) -> int:
        """Cancel geocoding calls still in flight."""
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        return len(pending)
