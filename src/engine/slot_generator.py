"""
Candidate slot generation.

For each working day in the requested range, subtracts a technician's
bookings and absences from their working hours and emits one candidate
per free gap that can host the new case. Candidates are anchored at the
start of the gap, so within a day the earliest viable time comes first.

Usage:
    slots = generate_candidates(tech, bookings, start, end, timedelta(hours=1))
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from src.engine.availability import work_window
from src.schemas.scheduling_schema import Absence, Booking, Technician
from src.utils import localize, minutes_between

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateSlot:
    """A free window of exactly the requested duration."""

    technician_id: str
    start: datetime
    end: datetime
    is_first_job: bool
    gap_end: datetime
    prior_booking: Optional[Booking] = None
    next_busy_start: Optional[datetime] = None
    is_last_job: bool = False

    @property
    def day(self) -> date:
        return self.start.date()

    @property
    def slack_minutes(self) -> int:
        """Idle minutes between the end of this slot and the next commitment."""
        return minutes_between(self.end, self.next_busy_start or self.gap_end)


def merge_intervals(
    intervals: Iterable[tuple[datetime, datetime]],
) -> list[tuple[datetime, datetime]]:
    """Merge overlapping or touching intervals into disjoint busy blocks."""
    merged: list[tuple[datetime, datetime]] = []
    for start, end in sorted(intervals):
        if end <= start:
            continue
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _localized(item, tz: ZoneInfo):
    return item.model_copy(update={"start": localize(item.start, tz), "end": localize(item.end, tz)})


def _bookings_on(day: date, bookings: Sequence[Booking], tz: ZoneInfo) -> list[Booking]:
    day_start = datetime.combine(day, time.min, tzinfo=tz)
    day_end = day_start + timedelta(days=1)
    return [b for b in bookings if b.end > b.start and b.start < day_end and b.end > day_start]


def _clip(
    items: Iterable, window_start: datetime, window_end: datetime
) -> list[tuple[datetime, datetime]]:
    clipped = []
    for item in items:
        start = max(item.start, window_start)
        end = min(item.end, window_end)
        if start < end:
            clipped.append((start, end))
    return clipped


def generate_candidates(
    technician: Technician,
    bookings: Sequence[Booking],
    range_start: datetime,
    range_end: datetime,
    duration: timedelta,
    absences: Sequence[Absence] = (),
    tz: Optional[ZoneInfo] = None,
) -> list[CandidateSlot]:
    """Enumerate free windows of ``duration`` for one technician."""
    if duration <= timedelta(0):
        raise ValueError(f"duration must be positive, got {duration}")
    tz = tz or ZoneInfo("UTC")
    range_start = localize(range_start, tz)
    range_end = localize(range_end, tz)
    bookings = sorted(
        (_localized(b, tz) for b in bookings if b.technician_id == technician.id),
        key=lambda b: (b.start, b.end),
    )
    absences = [_localized(a, tz) for a in absences if a.technician_id == technician.id]

    candidates: list[CandidateSlot] = []
    day = range_start.date()
    while day <= range_end.date():
        candidates.extend(
            _candidates_for_day(technician, day, bookings, absences, range_start, range_end, duration, tz)
        )
        day += timedelta(days=1)

    logger.debug(
        "Generated %d candidate(s) for %s between %s and %s",
        len(candidates), technician.id, range_start.isoformat(), range_end.isoformat(),
    )
    return candidates


def _candidates_for_day(
    technician: Technician,
    day: date,
    bookings: Sequence[Booking],
    absences: Sequence[Absence],
    range_start: datetime,
    range_end: datetime,
    duration: timedelta,
    tz: ZoneInfo,
) -> list[CandidateSlot]:
    window = work_window(technician, day, tz)
    if window is None:
        return []
    work_start, work_end = window

    day_absences = [a for a in absences if a.start < work_end and a.end > work_start]
    if any(a.start <= work_start and a.end >= work_end for a in day_absences):
        logger.debug("%s is absent all of %s", technician.id, day)
        return []

    window_start = max(work_start, range_start)
    window_end = min(work_end, range_end)
    if window_start >= window_end:
        return []

    day_bookings = _bookings_on(day, bookings, tz)
    busy = merge_intervals(
        _clip(day_bookings, window_start, window_end) + _clip(day_absences, window_start, window_end)
    )

    gaps: list[tuple[datetime, datetime, Optional[datetime]]] = []
    cursor = window_start
    for block_start, block_end in busy:
        if block_start > cursor:
            gaps.append((cursor, block_start, block_start))
        cursor = max(cursor, block_end)
    if cursor < window_end:
        gaps.append((cursor, window_end, None))

    slots = []
    for gap_start, gap_end, next_busy in gaps:
        if gap_end - gap_start < duration:
            continue
        slot_end = gap_start + duration
        prior = [b for b in day_bookings if b.end <= gap_start]
        prior_booking = max(prior, key=lambda b: (b.end, b.start)) if prior else None
        slots.append(
            CandidateSlot(
                technician_id=technician.id,
                start=gap_start,
                end=slot_end,
                is_first_job=prior_booking is None,
                gap_end=gap_end,
                prior_booking=prior_booking,
                next_busy_start=next_busy,
                is_last_job=not any(b.start >= slot_end for b in day_bookings),
            )
        )
    return slots
