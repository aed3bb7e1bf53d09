"""Versioned response schema for booking suggestions.

These models are the wire contract with the coordinator UI. New fields
must be additive; bump SCHEMA_VERSION on any breaking change.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

SCHEMA_VERSION = "1"


class OriginSource(str, Enum):
    HOME = "home"
    PRIOR_CASE = "prior_case"
    VEHICLE = "vehicle"
    HOME_FALLBACK = "home_fallback"


class TravelBand(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONGER = "longer"
    LONG = "long"


class EfficiencyLabel(str, Enum):
    OPTIMAL = "Optimal"
    GOOD = "Bra"
    OK = "OK"
    LOW = "Låg"


class SuggestionStatus(str, Enum):
    """Overall outcome of a suggestion request."""
    OK = "ok"
    NO_AVAILABILITY = "no_availability"
    ESTIMATES_UNAVAILABLE = "estimates_unavailable"
    PARTIAL = "partial"


class OriginDescriptor(BaseModel):
    """Where the technician is coming from before the suggested slot."""
    address: str = ""
    source: OriginSource
    prior_case_title: Optional[str] = None
    prior_case_end_time: Optional[datetime] = None
    degraded: bool = False


class SingleSuggestion(BaseModel):
    """One technician, one time window, scored."""
    schema_version: str = SCHEMA_VERSION
    technician_id: str
    technician_name: str
    start_time: datetime
    end_time: datetime
    travel_time_minutes: Optional[int] = Field(default=None, ge=0)
    estimate_available: bool = True
    travel_band: Optional[TravelBand] = None
    origin: OriginDescriptor
    origin_description: str = ""
    efficiency_score: int = Field(ge=0, le=100)
    efficiency_label: EfficiencyLabel
    is_first_job: bool = False
    travel_time_home_minutes: Optional[int] = Field(default=None, ge=0)

    @property
    def day(self) -> date:
        return self.start_time.date()


class DayGroup(BaseModel):
    """Suggestions that fall on one calendar day, best first."""
    date: date
    best_score: int
    suggestions: list[SingleSuggestion] = Field(default_factory=list)


class RankedSuggestions(BaseModel):
    """Top picks across all days plus the remainder grouped by day."""
    schema_version: str = SCHEMA_VERSION
    status: SuggestionStatus = SuggestionStatus.OK
    top_picks: list[SingleSuggestion] = Field(default_factory=list)
    by_day: list[DayGroup] = Field(default_factory=list)
    estimates_unavailable: bool = False
    incomplete_technicians: list[str] = Field(default_factory=list)
    total_candidates: int = 0


class ErrorResponse(BaseModel):
    """Body returned to the UI when a request is rejected."""
    code: str
    detail: str
