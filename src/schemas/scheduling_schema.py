"""Technician, calendar and request data models consumed by the engine."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from src.utils import WEEKDAY_KEYS, format_address, parse_hhmm


class Coordinate(BaseModel):
    """WGS84 latitude/longitude pair."""
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class Location(BaseModel):
    """An address with an optional pre-resolved coordinate."""
    address: str = ""
    coordinate: Optional[Coordinate] = None

    @field_validator("address", mode="before")
    @classmethod
    def _flatten_address(cls, value: Any) -> str:
        return format_address(value)

    @property
    def is_resolvable(self) -> bool:
        return self.coordinate is not None or bool(self.address)


class DaySchedule(BaseModel):
    """Working hours for one weekday, as 'HH:MM' strings."""
    start: str
    end: str
    active: bool = True

    @field_validator("start", "end")
    @classmethod
    def _check_hhmm(cls, value: str) -> str:
        parse_hhmm(value)
        return value.strip()


class WorkSchedule(BaseModel):
    """Weekly working-hours template. A missing weekday means no work that day."""
    monday: Optional[DaySchedule] = None
    tuesday: Optional[DaySchedule] = None
    wednesday: Optional[DaySchedule] = None
    thursday: Optional[DaySchedule] = None
    friday: Optional[DaySchedule] = None
    saturday: Optional[DaySchedule] = None
    sunday: Optional[DaySchedule] = None

    def for_weekday(self, key: str) -> Optional[DaySchedule]:
        if key not in WEEKDAY_KEYS:
            raise KeyError(key)
        return getattr(self, key)


class Technician(BaseModel):
    """Technician record from the directory. Read-only to the engine."""
    id: str
    name: str
    home: Location = Field(default_factory=Location)
    work_schedule: Optional[WorkSchedule] = None
    active: bool = True
    competencies: list[str] = Field(default_factory=list)

    def is_qualified_for(self, pest_type: str) -> bool:
        wanted = pest_type.strip().casefold()
        return any(c.strip().casefold() == wanted for c in self.competencies)


class Booking(BaseModel):
    """An existing committed case on a technician's calendar."""
    technician_id: str
    start: datetime
    end: datetime
    title: str = "Ärende"
    location: Optional[Location] = None


class Absence(BaseModel):
    """Time a technician is unavailable (leave, training, sick day)."""
    technician_id: str
    start: datetime
    end: datetime


class NewCaseRequest(BaseModel):
    """A case that needs a time slot and a technician."""
    location: Location
    range_start: datetime
    range_end: datetime
    duration_minutes: int
    technician_ids: Optional[list[str]] = None
    pest_type: Optional[str] = None
