"""
Offline console demo: runs the booking suggestion engine without any API keys.

Builds a small technician pool around Stockholm with an in-memory
calendar, estimates drive times with the haversine provider, and prints
the top picks and day groups the coordinator UI would show. No network
calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario outage
    python console_demo.py --scenario fully_booked
"""

import argparse
import asyncio
import sys
from datetime import date, datetime, time, timedelta
from typing import Optional

from src.config import settings
from src.engine.suggestion_engine import SuggestionEngine
from src.errors import DirectionsError, SuggestionError
from src.providers.directions import HaversineDirectionsProvider
from src.providers.store import InMemoryBookingStore, InMemoryTechnicianDirectory
from src.schemas.scheduling_schema import (
    Booking,
    Coordinate,
    DaySchedule,
    Location,
    NewCaseRequest,
    Technician,
    WorkSchedule,
)
from src.schemas.suggestion_schema import RankedSuggestions, SingleSuggestion

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

LABEL_COLOURS = {"Optimal": GREEN, "Bra": BLUE, "OK": YELLOW, "Låg": DIM}

WEEKDAYS = WorkSchedule(**{
    day: DaySchedule(start="08:00", end="17:00")
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
})

PLACES: dict[str, Location] = {
    "sodermalm": Location(address="Götgatan 50, Stockholm", coordinate=Coordinate(lat=59.3128, lng=18.0736)),
    "solna": Location(address="Solna torg 3, Solna", coordinate=Coordinate(lat=59.3600, lng=18.0009)),
    "nacka": Location(address="Värmdövägen 84, Nacka", coordinate=Coordinate(lat=59.3105, lng=18.1637)),
    "bromma": Location(address="Brommaplan 403, Bromma", coordinate=Coordinate(lat=59.3384, lng=17.9394)),
    "kungsholmen": Location(address="Fleminggatan 20, Stockholm", coordinate=Coordinate(lat=59.3326, lng=18.0389)),
    "taby": Location(address="Stora Marknadsvägen 15, Täby", coordinate=Coordinate(lat=59.4439, lng=18.0687)),
    "sodertalje": Location(address="Storgatan 12, Södertälje", coordinate=Coordinate(lat=59.1955, lng=17.6253)),
}


class OutageDirections:
    """Directions provider that always fails, for the outage scenario."""

    async def travel_time(self, origin, destination) -> float:
        raise DirectionsError("Directions API unavailable")


def _next_monday(today: date) -> date:
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


def _at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=settings.engine.tz)


def build_pool() -> list[Technician]:
    return [
        Technician(id="tech-anna", name="Anna Lindqvist", home=PLACES["sodermalm"], work_schedule=WEEKDAYS,
                   competencies=["Råttor", "Vägglöss"]),
        Technician(id="tech-erik", name="Erik Johansson", home=PLACES["taby"], work_schedule=WEEKDAYS,
                   competencies=["Getingar", "Råttor"]),
        Technician(id="tech-sara", name="Sara Nilsson", home=PLACES["sodertalje"], work_schedule=WEEKDAYS,
                   competencies=["Råttor", "Mjölbaggar"]),
    ]


def build_calendar(monday: date, fully_booked: bool = False) -> InMemoryBookingStore:
    store = InMemoryBookingStore(tz=settings.engine.tz)
    if fully_booked:
        for tech in build_pool():
            for offset in range(5):
                day = monday + timedelta(days=offset)
                store.add_booking(Booking(
                    technician_id=tech.id, start=_at(day, 8), end=_at(day, 17),
                    title="Heldagssanering", location=PLACES["nacka"],
                ))
        return store

    store.add_booking(Booking(
        technician_id="tech-anna", start=_at(monday, 8), end=_at(monday, 10),
        title="Råttor i källare, BRF Solgläntan", location=PLACES["kungsholmen"],
    ))
    store.add_booking(Booking(
        technician_id="tech-anna", start=_at(monday, 13), end=_at(monday, 15, 30),
        title="Vägglöss, lägenhet 1102", location=PLACES["nacka"],
    ))
    store.add_booking(Booking(
        technician_id="tech-erik", start=_at(monday, 9), end=_at(monday, 12),
        title="Getingbo, villa", location=PLACES["solna"],
    ))
    store.add_booking(Booking(
        technician_id="tech-erik", start=_at(monday + timedelta(days=1), 8), end=_at(monday + timedelta(days=1), 16),
        title="Kontroll av fällor, lager", location=PLACES["taby"],
    ))
    store.add_booking(Booking(
        technician_id="tech-sara", start=_at(monday, 8), end=_at(monday, 11),
        title="Mjölbaggar, restaurang", location=None,
    ))
    return store


def format_suggestion(s: SingleSuggestion, rank: Optional[int] = None) -> str:
    colour = LABEL_COLOURS.get(s.efficiency_label.value, RESET)
    travel = f"{s.travel_time_minutes} min" if s.travel_time_minutes is not None else "okänd"
    home = f", hem {s.travel_time_home_minutes} min" if s.travel_time_home_minutes is not None else ""
    prefix = f"#{rank} " if rank else "   "
    return (
        f"{prefix}{colour}{BOLD}{s.efficiency_score:>3} {s.efficiency_label.value:<7}{RESET} "
        f"{s.start_time:%a %d %b %H:%M}-{s.end_time:%H:%M}  {s.technician_name:<16} "
        f"restid {travel}{home}\n"
        f"{DIM}        {s.origin_description}{RESET}"
    )


def print_result(result: RankedSuggestions) -> None:
    print(f"\n{BOLD}Status:{RESET} {result.status.value}  "
          f"({result.total_candidates} förslag)")
    if result.estimates_unavailable:
        print(f"{RED}Restider kunde inte beräknas, förslagen är sorterade på starttid.{RESET}")
    if result.incomplete_technicians:
        print(f"{YELLOW}Ej färdigberäknade: {', '.join(result.incomplete_technicians)}{RESET}")

    if result.top_picks:
        print(f"\n{BOLD}{GREEN}Bästa val{RESET}")
        for i, s in enumerate(result.top_picks, start=1):
            print(format_suggestion(s, rank=i))

    for group in result.by_day:
        print(f"\n{BOLD}{group.date:%A %d %B}{RESET} {DIM}(bästa {group.best_score}, "
              f"{len(group.suggestions)} förslag){RESET}")
        for s in group.suggestions:
            print(format_suggestion(s))


async def run_scenario(scenario: str) -> int:
    monday = _next_monday(date.today())
    if scenario == "outage":
        directions = OutageDirections()
    else:
        directions = HaversineDirectionsProvider(settings.providers.haversine_speed_kmh)

    engine = SuggestionEngine(
        directions=directions,
        booking_store=build_calendar(monday, fully_booked=scenario == "fully_booked"),
        directory=InMemoryTechnicianDirectory(build_pool()),
        config=settings.engine,
        scoring=settings.scoring,
    )
    request = NewCaseRequest(
        location=PLACES["bromma"],
        range_start=_at(monday, 0),
        range_end=_at(monday + timedelta(days=2), 23, 59),
        duration_minutes=90,
        pest_type="Råttor",
    )

    print()
    print(f"{BOLD}{'=' * 60}{RESET}")
    print(f"{BOLD}  BOOKING SUGGESTIONS - Scenario: {scenario}{RESET}")
    print(f"{BOLD}  Case: {request.location.address}, {request.duration_minutes} min, {request.pest_type}{RESET}")
    print(f"{BOLD}{'=' * 60}{RESET}")

    try:
        result = await engine.suggest(request)
    except SuggestionError as exc:
        print(f"{RED}Request rejected: {exc.code.value} ({exc.detail}){RESET}")
        return 1
    print_result(result)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Offline booking suggestion demo.")
    parser.add_argument(
        "--scenario",
        choices=["standard", "outage", "fully_booked"],
        default="standard",
        help="Calendar/provider setup to demo (default: standard).",
    )
    args = parser.parse_args(argv)
    return asyncio.run(run_scenario(args.scenario))


if __name__ == "__main__":
    sys.exit(main())
