"""
Travel time estimation for one suggestion request.

Wraps a DirectionsProvider with:
  - a cache keyed by the origin/destination pair quantised to a grid
    (default ~50 m), so many candidates sharing an origin cost one call
  - in-flight deduplication of identical concurrent lookups
  - a semaphore bounding outbound calls to the provider
  - a per-call timeout

Failures never become a default number. They come back as an explicit
TravelEstimate with ``minutes=None`` and a non-OK status.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.config import EngineConfig
from src.errors import DirectionsError
from src.providers.directions import DirectionsProvider
from src.schemas.scheduling_schema import Coordinate

logger = logging.getLogger(__name__)

METERS_PER_DEGREE = 111_320.0


class TravelStatus(str, Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class TravelEstimate:
    """Drive time in whole minutes, or None with the reason it is missing."""

    minutes: Optional[int]
    status: TravelStatus = TravelStatus.OK

    @property
    def available(self) -> bool:
        return self.status == TravelStatus.OK

    @classmethod
    def unavailable(cls) -> "TravelEstimate":
        return cls(minutes=None, status=TravelStatus.UNAVAILABLE)

    @classmethod
    def timed_out(cls) -> "TravelEstimate":
        return cls(minutes=None, status=TravelStatus.TIMEOUT)


CacheKey = tuple[tuple[int, int], tuple[int, int]]


class TravelTimeEstimator:
    """Request-scoped, cached and rate-limited travel time lookups."""

    def __init__(self, directions: DirectionsProvider, config: EngineConfig) -> None:
        self.directions = directions
        self.config = config
        self._semaphore = asyncio.Semaphore(config.max_concurrent_lookups)
        self._tasks: dict[CacheKey, asyncio.Task] = {}
        self.cache_hits = 0
        self.provider_calls = 0

    def _quantise(self, point: Coordinate) -> tuple[int, int]:
        lat_step = self.config.travel_cache_precision_m / METERS_PER_DEGREE
        lng_step = lat_step / max(math.cos(math.radians(point.lat)), 0.01)
        return round(point.lat / lat_step), round(point.lng / lng_step)

    def cache_key(self, origin: Coordinate, destination: Coordinate) -> CacheKey:
        return self._quantise(origin), self._quantise(destination)

    async def estimate(
        self, origin: Optional[Coordinate], destination: Optional[Coordinate]
    ) -> TravelEstimate:
        """Return the drive time from origin to destination.

        A missing coordinate on either side (e.g. geocoding failed) yields
        an unavailable estimate without calling the provider.
        """
        if origin is None or destination is None:
            return TravelEstimate.unavailable()

        key = self.cache_key(origin, destination)
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._lookup(origin, destination))
            self._tasks[key] = task
        else:
            self.cache_hits += 1
        return await asyncio.shield(task)

    async def _lookup(self, origin: Coordinate, destination: Coordinate) -> TravelEstimate:
        async with self._semaphore:
            self.provider_calls += 1
            try:
                minutes = await asyncio.wait_for(
                    self.directions.travel_time(origin, destination),
                    timeout=self.config.travel_lookup_timeout_sec,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Travel lookup timed out after %.1fs (%.4f,%.4f -> %.4f,%.4f)",
                    self.config.travel_lookup_timeout_sec,
                    origin.lat, origin.lng, destination.lat, destination.lng,
                )
                return TravelEstimate.timed_out()
            except DirectionsError as exc:
                logger.warning("Travel lookup failed: %s", exc)
                return TravelEstimate.unavailable()

        if minutes is None or not math.isfinite(minutes) or minutes < 0:
            logger.warning("Directions provider returned invalid duration %r", minutes)
            return TravelEstimate.unavailable()
        return TravelEstimate(minutes=math.ceil(minutes))

    def cancel_pending(self) -> int:
        """Cancel lookups still in flight. Returns how many were cancelled."""
        cancelled = 0
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled
