"""
Origin context: where a technician is coming from before a candidate slot.

First job of the day starts from home (or from the vehicle's live
position for same-day slots, when a vehicle provider is configured).
Later slots start from the preceding booking. A preceding booking with
no usable location falls back to home and is flagged as degraded so the
scorer can lower its confidence.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from src.engine.slot_generator import CandidateSlot
from src.providers.store import VehicleLocationProvider
from src.schemas.scheduling_schema import Location, Technician
from src.schemas.suggestion_schema import OriginDescriptor, OriginSource

logger = logging.getLogger(__name__)

TITLE_PREVIEW_LENGTH = 40


@dataclass(frozen=True)
class OriginContext:
    location: Location
    source: OriginSource
    is_first_job: bool
    prior_booking_end_time: Optional[datetime] = None
    prior_booking_title: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.source == OriginSource.HOME_FALLBACK

    def to_descriptor(self) -> OriginDescriptor:
        return OriginDescriptor(
            address=self.location.address,
            source=self.source,
            prior_case_title=self.prior_booking_title,
            prior_case_end_time=self.prior_booking_end_time,
            degraded=self.degraded,
        )

    def describe(self) -> str:
        """Human-readable origin line shown on the suggestion card."""
        if self.source == OriginSource.VEHICLE:
            return "Första jobbet för dagen. Utgår från bilens aktuella position."
        if self.source == OriginSource.HOME:
            return f"Första jobbet för dagen. Startar hemifrån ({self.location.address})."

        title = self.prior_booking_title or "Ärende"
        if len(title) > TITLE_PREVIEW_LENGTH:
            title = title[:TITLE_PREVIEW_LENGTH] + "..."
        ends = self.prior_booking_end_time.strftime("%H:%M") if self.prior_booking_end_time else "?"
        if self.source == OriginSource.HOME_FALLBACK:
            return (
                f'Efter "{title}" som slutar {ends}. Ärendet saknar adress, '
                f"restid beräknad hemifrån ({self.location.address})."
            )
        return f'Efter "{title}" som slutar {ends}. Kommer från {self.location.address}.'


class OriginResolver:
    """Resolves origin contexts for one request, caching vehicle positions."""

    def __init__(
        self,
        today: date,
        vehicle_locations: Optional[VehicleLocationProvider] = None,
        vehicle_timeout_sec: Optional[float] = None,
    ) -> None:
        self.today = today
        self.vehicle_locations = vehicle_locations
        self.vehicle_timeout_sec = vehicle_timeout_sec
        self._positions: dict[str, asyncio.Task] = {}

    async def resolve(self, technician: Technician, candidate: CandidateSlot) -> OriginContext:
        if candidate.is_first_job or candidate.prior_booking is None:
            return await self._first_job_origin(technician, candidate)

        prior = candidate.prior_booking
        if prior.location is not None and prior.location.is_resolvable:
            return OriginContext(
                location=prior.location,
                source=OriginSource.PRIOR_CASE,
                is_first_job=False,
                prior_booking_end_time=prior.end,
                prior_booking_title=prior.title,
            )

        logger.info(
            "Booking %r for %s has no location, using home as origin",
            prior.title, technician.id,
        )
        return OriginContext(
            location=technician.home,
            source=OriginSource.HOME_FALLBACK,
            is_first_job=False,
            prior_booking_end_time=prior.end,
            prior_booking_title=prior.title,
        )

    async def _first_job_origin(
        self, technician: Technician, candidate: CandidateSlot
    ) -> OriginContext:
        if self.vehicle_locations is not None and candidate.day == self.today:
            position = await self._vehicle_position(technician.id)
            if position is not None:
                return OriginContext(
                    location=Location(address="", coordinate=position),
                    source=OriginSource.VEHICLE,
                    is_first_job=True,
                )
        return OriginContext(location=technician.home, source=OriginSource.HOME, is_first_job=True)

    async def _vehicle_position(self, technician_id: str):
        task = self._positions.get(technician_id)
        if task is None:
            task = asyncio.ensure_future(self._lookup_position(technician_id))
            self._positions[technician_id] = task
        return await asyncio.shield(task)

    async def _lookup_position(self, technician_id: str):
        try:
            return await asyncio.wait_for(
                self.vehicle_locations.get_position(technician_id), self.vehicle_timeout_sec
            )
        except asyncio.TimeoutError:
            logger.warning("Vehicle position lookup timed out for %s", technician_id)
            return None
        except Exception as exc:
            logger.warning("Vehicle position lookup failed for %s: %s", technician_id, exc)
            return None

    def cancel_pending(self) -> int:
        pending = [task for task in self._positions.values() if not task.done()]
        for task in pending:
            task.cancel()
        return len(pending)
