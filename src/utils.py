"""Shared utilities used across the booking suggestion engine."""

import re
from datetime import date, datetime, time, tzinfo
from typing import Any

WEEKDAY_KEYS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)


def format_address(value: Any) -> str:
    """Flatten an address value into a single display string.

    Case records store addresses either as plain strings or as geocoder
    objects carrying ``formatted_address``.

    Examples:
        >>> format_address({"formatted_address": "Storgatan 1, Stockholm"})
        'Storgatan 1, Stockholm'
        >>> format_address("  Storgatan 1,   Stockholm ")
        'Storgatan 1, Stockholm'
        >>> format_address(None)
        ''
    """
    if not value:
        return ""
    if isinstance(value, dict):
        value = value.get("formatted_address") or ""
    return re.sub(r"\s+", " ", str(value)).strip()


def normalize_address(value: str) -> str:
    """Lower-cased, whitespace-collapsed address used as a cache key."""
    return format_address(value).lower()


def weekday_key(day: date) -> str:
    """Return the work-schedule key ('monday'...'sunday') for a date."""
    return WEEKDAY_KEYS[day.weekday()]


def parse_hhmm(value: str) -> time:
    """Parse an 'HH:MM' string into a time."""
    return datetime.strptime(value.strip(), "%H:%M").time()


def localize(value: datetime, tz: tzinfo) -> datetime:
    """Interpret naive datetimes in ``tz`` and convert aware ones to it."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end (negative when end precedes start)."""
    return int((end - start).total_seconds() // 60)
