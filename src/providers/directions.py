"""
Drive-time providers.

GoogleDistanceMatrixProvider queries the Distance Matrix API for a single
origin/destination pair. HaversineDirectionsProvider estimates drive time
from great-circle distance at a fixed average speed and is used for
offline runs and the console demo.
"""

import logging
import math
from typing import Protocol

import httpx

from src.config import ProviderConfig
from src.errors import DirectionsError
from src.schemas.scheduling_schema import Coordinate

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


class DirectionsProvider(Protocol):
    async def travel_time(self, origin: Coordinate, destination: Coordinate) -> float:
        """Drive time in minutes, raising DirectionsError on failure."""
        ...


def haversine_km(origin: Coordinate, destination: Coordinate) -> float:
    """Great-circle distance between two coordinates in km."""
    lat1, lon1, lat2, lon2 = map(
        math.radians, [origin.lat, origin.lng, destination.lat, destination.lng]
    )
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class HaversineDirectionsProvider:
    """Straight-line distance at an assumed average road speed."""

    def __init__(self, speed_kmh: float = 50.0) -> None:
        if speed_kmh <= 0:
            raise ValueError(f"speed_kmh must be > 0, got {speed_kmh}")
        self.speed_kmh = speed_kmh

    async def travel_time(self, origin: Coordinate, destination: Coordinate) -> float:
        return haversine_km(origin, destination) / self.speed_kmh * 60


class GoogleDistanceMatrixProvider:
    """Google Distance Matrix client for one origin/destination pair."""

    def __init__(self, client: httpx.AsyncClient, config: ProviderConfig) -> None:
        self.client = client
        self.config = config

    async def travel_time(self, origin: Coordinate, destination: Coordinate) -> float:
        params = {
            "origins": f"{origin.lat},{origin.lng}",
            "destinations": f"{destination.lat},{destination.lng}",
            "mode": "driving",
            "language": "sv",
            "key": self.config.google_maps_api_key,
        }

        try:
            response = await self.client.get(
                f"{self.config.google_maps_base_url}/distancematrix/json",
                params=params,
                timeout=self.config.http_timeout_sec,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DirectionsError(f"Distance Matrix request failed: {exc}") from exc

        if data.get("status") != "OK":
            raise DirectionsError(f"Distance Matrix returned {data.get('status', 'no status')}")
        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError):
            raise DirectionsError("Distance Matrix response has no elements") from None
        if element.get("status") != "OK":
            raise DirectionsError(f"No route found ({element.get('status')})")

        return element["duration"]["value"] / 60
