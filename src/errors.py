"""Error taxonomy shared by the suggestion engine, providers and API."""

from enum import Enum


class SuggestionErrorCode(str, Enum):
    EMPTY_TECHNICIAN_POOL = "empty_technician_pool"
    INVALID_DATE_RANGE = "invalid_date_range"
    INVALID_DURATION = "invalid_duration"
    PROVIDER_UNAVAILABLE = "provider_unavailable"


INPUT_ERROR_CODES = frozenset({
    SuggestionErrorCode.EMPTY_TECHNICIAN_POOL,
    SuggestionErrorCode.INVALID_DATE_RANGE,
    SuggestionErrorCode.INVALID_DURATION,
})


class SuggestionError(Exception):
    """Raised when a suggestion request cannot be answered at all."""

    def __init__(self, code: SuggestionErrorCode, detail: str) -> None:
        super().__init__(f"{code.value}: {detail}")
        self.code = code
        self.detail = detail

    @property
    def is_input_error(self) -> bool:
        return self.code in INPUT_ERROR_CODES


class ProviderError(Exception):
    """Base class for failures of an external provider."""


class GeocodingError(ProviderError):
    """Address could not be resolved to a coordinate."""


class DirectionsError(ProviderError):
    """Travel time could not be obtained from the directions provider."""


class BookingStoreError(ProviderError):
    """Bookings or absences could not be read from the case store."""
