"""Shared test fixtures and helpers."""

import asyncio
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from src.config import EngineConfig, ScoringConfig
from src.engine.suggestion_engine import SuggestionEngine
from src.errors import DirectionsError, GeocodingError
from src.providers.store import InMemoryBookingStore, InMemoryTechnicianDirectory
from src.schemas.scheduling_schema import (
    Absence,
    Booking,
    Coordinate,
    DaySchedule,
    Location,
    NewCaseRequest,
    Technician,
    WorkSchedule,
)

TZ = ZoneInfo("Europe/Stockholm")

# 2025-03-17 is a Monday.
MONDAY = date(2025, 3, 17)

CASE_POINT = Coordinate(lat=59.3384, lng=17.9394)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware datetime in the engine timezone."""
    return datetime.combine(day, time(hour, minute), tzinfo=TZ)


def point(n: int) -> Coordinate:
    """Distinct coordinates roughly 1 km apart, for fake directions lookups."""
    return Coordinate(lat=59.0 + n * 0.01, lng=18.0)


def make_schedule(start: str = "08:00", end: str = "17:00", weekend: bool = False) -> WorkSchedule:
    days = ["monday", "tuesday", "wednesday", "thursday", "friday"]
    if weekend:
        days += ["saturday", "sunday"]
    return WorkSchedule(**{d: DaySchedule(start=start, end=end) for d in days})


def make_technician(
    tech_id: str = "tech-1",
    name: Optional[str] = None,
    home: Optional[Coordinate] = None,
    schedule: Optional[WorkSchedule] = None,
    active: bool = True,
    competencies: Optional[list[str]] = None,
) -> Technician:
    """Helper to create a Technician with a weekday 08-17 schedule."""
    return Technician(
        id=tech_id,
        name=name or tech_id.replace("-", " ").title(),
        home=Location(address=f"Hemgatan 1, {tech_id}", coordinate=home or point(0)),
        work_schedule=schedule if schedule is not None else make_schedule(),
        active=active,
        competencies=competencies or [],
    )


def make_booking(
    tech_id: str = "tech-1",
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    title: str = "Råttsanering",
    location: Optional[Coordinate] = None,
    address: str = "Kundvägen 5",
) -> Booking:
    """Helper to create a Booking. Pass address="" with no location for a case without one."""
    start = start or at(MONDAY, 10)
    end = end or start + timedelta(hours=1)
    loc = None
    if location is not None or address:
        loc = Location(address=address, coordinate=location)
    return Booking(technician_id=tech_id, start=start, end=end, title=title, location=loc)


def make_absence(tech_id: str, start: datetime, end: datetime) -> Absence:
    return Absence(technician_id=tech_id, start=start, end=end)


def make_request(
    day: date = MONDAY,
    days: int = 1,
    duration: int = 60,
    location: Optional[Location] = None,
    technician_ids: Optional[list[str]] = None,
) -> NewCaseRequest:
    return NewCaseRequest(
        location=location or Location(address="Brommaplan 403, Bromma", coordinate=CASE_POINT),
        range_start=at(day, 0),
        range_end=at(day + timedelta(days=days - 1), 23, 59),
        duration_minutes=duration,
        technician_ids=technician_ids,
    )


class FakeDirections:
    """Directions provider answering from a table keyed by origin coordinate.

    Unknown origins get ``default`` minutes. Every call is recorded.
    """

    def __init__(self, minutes_by_origin: Optional[dict[tuple[float, float], float]] = None,
                 default: float = 10.0, delay: float = 0.0) -> None:
        self.minutes_by_origin = minutes_by_origin or {}
        self.default = default
        self.delay = delay
        self.calls: list[tuple[Coordinate, Coordinate]] = []

    async def travel_time(self, origin, destination) -> float:
        self.calls.append((origin, destination))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.minutes_by_origin.get((origin.lat, origin.lng), self.default)


class FailingDirections:
    def __init__(self) -> None:
        self.calls = 0

    async def travel_time(self, origin, destination) -> float:
        self.calls += 1
        raise DirectionsError("OVER_QUERY_LIMIT")


class SlowDirections:
    """Never answers within any reasonable timeout."""

    async def travel_time(self, origin, destination) -> float:
        await asyncio.sleep(10)
        return 1.0


class FakeGeocoder:
    def __init__(self, table: Optional[dict[str, Coordinate]] = None) -> None:
        self.table = table or {}
        self.calls: list[str] = []

    async def geocode(self, address: str) -> Coordinate:
        self.calls.append(address)
        if address not in self.table:
            raise GeocodingError(f"ZERO_RESULTS for {address!r}")
        return self.table[address]


def fixed_clock(value: Optional[datetime] = None):
    value = value or datetime(2025, 3, 10, 7, 0, tzinfo=timezone.utc)
    return lambda: value


@pytest.fixture
def engine_config():
    return EngineConfig(
        timezone="Europe/Stockholm",
        max_concurrent_lookups=4,
        travel_lookup_timeout_sec=0.2,
        suggestion_deadline_sec=2.0,
        travel_cache_precision_m=50,
        top_picks=3,
        home_commute_after="15:00",
    )


@pytest.fixture
def scoring_config():
    return ScoringConfig(
        idle_gap_grace_minutes=60,
        idle_gap_step_minutes=30,
        max_idle_penalty=10,
        degraded_origin_penalty=5,
    )


@pytest.fixture
def booking_store():
    store = InMemoryBookingStore(tz=TZ)
    yield store
    store.reset()


@pytest.fixture
def make_engine(engine_config, scoring_config, booking_store):
    """Factory building an engine around the shared in-memory store."""

    def _make(directions=None, technicians=None, geocoder=None, vehicles=None,
              config=None, clock=None) -> SuggestionEngine:
        return SuggestionEngine(
            directions=directions or FakeDirections(),
            booking_store=booking_store,
            geocoder=geocoder,
            directory=InMemoryTechnicianDirectory(technicians) if technicians is not None else None,
            vehicle_locations=vehicles,
            config=config or engine_config,
            scoring=scoring_config,
            clock=clock or fixed_clock(),
        )

    return _make
