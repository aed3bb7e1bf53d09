"""
Technician availability resolver.

Fetches each technician's bookings and absences once per suggestion
request and resolves the working-hours window for a given date.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from src.providers.store import BookingStore
from src.schemas.scheduling_schema import Absence, Booking, Technician
from src.utils import parse_hhmm, weekday_key

logger = logging.getLogger(__name__)


@dataclass
class TechnicianCalendar:
    """Committed time for one technician within the requested range."""

    technician: Technician
    bookings: list[Booking] = field(default_factory=list)
    absences: list[Absence] = field(default_factory=list)


def work_window(
    technician: Technician, day: date, tz: ZoneInfo
) -> Optional[tuple[datetime, datetime]]:
    """Return the technician's working hours on ``day``, or None for a day off."""
    if technician.work_schedule is None:
        return None
    schedule = technician.work_schedule.for_weekday(weekday_key(day))
    if schedule is None or not schedule.active:
        return None
    start = datetime.combine(day, parse_hhmm(schedule.start), tzinfo=tz)
    end = datetime.combine(day, parse_hhmm(schedule.end), tzinfo=tz)
    if end <= start:
        logger.warning(
            "Ignoring inverted working hours for %s on %s: %s-%s",
            technician.id, day, schedule.start, schedule.end,
        )
        return None
    return start, end


class AvailabilityResolver:
    """Request-scoped calendar cache in front of the booking store."""

    def __init__(self, store: BookingStore) -> None:
        self.store = store
        self._calendars: dict[str, TechnicianCalendar] = {}

    async def get_calendar(
        self, technician: Technician, start: datetime, end: datetime
    ) -> TechnicianCalendar:
        cached = self._calendars.get(technician.id)
        if cached is not None:
            return cached

        bookings, absences = await asyncio.gather(
            self.store.get_bookings(technician.id, start, end),
            self.store.get_absences(technician.id, start, end),
        )
        calendar = TechnicianCalendar(
            technician=technician,
            bookings=sorted(bookings, key=lambda b: (b.start, b.end)),
            absences=list(absences),
        )
        logger.debug(
            "Calendar for %s: %d booking(s), %d absence(s)",
            technician.id, len(calendar.bookings), len(calendar.absences),
        )
        self._calendars[technician.id] = calendar
        return calendar
