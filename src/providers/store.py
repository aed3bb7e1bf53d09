"""
Calendar, technician and vehicle-position collaborators.

The engine only reads from these. In production the booking store and
technician directory are backed by the case database; the in-memory
implementations here serve tests, the console demo and snapshot-driven
deployments (a JSON export of technicians, bookings and absences).
"""

import json
import logging
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Optional, Protocol, Union

from pydantic import BaseModel, Field

from src.schemas.scheduling_schema import Absence, Booking, Coordinate, Technician
from src.utils import localize

logger = logging.getLogger(__name__)


class BookingStore(Protocol):
    """Read access to committed calendar time. Raises BookingStoreError when unreachable."""

    async def get_bookings(
        self, technician_id: str, start: datetime, end: datetime
    ) -> list[Booking]:
        ...

    async def get_absences(
        self, technician_id: str, start: datetime, end: datetime
    ) -> list[Absence]:
        ...


class TechnicianDirectory(Protocol):
    async def list_active_technicians(self) -> list[Technician]:
        ...


class VehicleLocationProvider(Protocol):
    async def get_position(self, technician_id: str) -> Optional[Coordinate]:
        ...


def _overlaps(item_start: datetime, item_end: datetime, start: datetime, end: datetime) -> bool:
    return item_start < end and item_end > start


class InMemoryBookingStore:
    """Bookings and absences held in memory, keyed by technician."""

    def __init__(
        self,
        bookings: Optional[list[Booking]] = None,
        absences: Optional[list[Absence]] = None,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self.tz = tz or timezone.utc
        self._bookings: dict[str, list[Booking]] = {}
        self._absences: dict[str, list[Absence]] = {}
        for booking in bookings or []:
            self.add_booking(booking)
        for absence in absences or []:
            self.add_absence(absence)

    def add_booking(self, booking: Booking) -> None:
        booking = booking.model_copy(update={
            "start": localize(booking.start, self.tz), "end": localize(booking.end, self.tz),
        })
        self._bookings.setdefault(booking.technician_id, []).append(booking)

    def add_absence(self, absence: Absence) -> None:
        absence = absence.model_copy(update={
            "start": localize(absence.start, self.tz), "end": localize(absence.end, self.tz),
        })
        self._absences.setdefault(absence.technician_id, []).append(absence)

    async def get_bookings(
        self, technician_id: str, start: datetime, end: datetime
    ) -> list[Booking]:
        found = [
            b for b in self._bookings.get(technician_id, [])
            if _overlaps(b.start, b.end, start, end)
        ]
        return sorted(found, key=lambda b: (b.start, b.end))

    async def get_absences(
        self, technician_id: str, start: datetime, end: datetime
    ) -> list[Absence]:
        return [
            a for a in self._absences.get(technician_id, [])
            if _overlaps(a.start, a.end, start, end)
        ]

    def reset(self) -> None:
        """Clear all bookings and absences. Used by test fixtures for isolation."""
        self._bookings.clear()
        self._absences.clear()


class InMemoryTechnicianDirectory:
    def __init__(self, technicians: Optional[list[Technician]] = None) -> None:
        self._technicians = list(technicians or [])

    async def list_active_technicians(self) -> list[Technician]:
        return [t for t in self._technicians if t.active]


class InMemoryVehicleLocations:
    def __init__(self, positions: Optional[dict[str, Coordinate]] = None) -> None:
        self._positions = dict(positions or {})

    async def get_position(self, technician_id: str) -> Optional[Coordinate]:
        return self._positions.get(technician_id)


class Snapshot(BaseModel):
    """JSON export of the calendar data the engine reads."""
    technicians: list[Technician] = Field(default_factory=list)
    bookings: list[Booking] = Field(default_factory=list)
    absences: list[Absence] = Field(default_factory=list)
    vehicle_positions: dict[str, Coordinate] = Field(default_factory=dict)


def load_snapshot(
    path: Union[str, Path], tz: Optional[tzinfo] = None,
) -> tuple[InMemoryTechnicianDirectory, InMemoryBookingStore, InMemoryVehicleLocations]:
    """Build in-memory collaborators from a snapshot file."""
    snapshot_path = Path(path)
    data = json.loads(snapshot_path.read_text(encoding="utf-8"))
    snapshot = Snapshot.model_validate(data)
    logger.info(
        "Loaded snapshot %s: %d technician(s), %d booking(s), %d absence(s)",
        snapshot_path,
        len(snapshot.technicians),
        len(snapshot.bookings),
        len(snapshot.absences),
    )
    return (
        InMemoryTechnicianDirectory(snapshot.technicians),
        InMemoryBookingStore(snapshot.bookings, snapshot.absences, tz=tz),
        InMemoryVehicleLocations(snapshot.vehicle_positions),
    )
