"""Clock-time normalization for booking schedules.

Checkout pages send times the way they were displayed: "9:05 AM",
"12:30 PM", a slot range such as "10:00 AM - 10:30 AM", or already in
24-hour form. Bookings store a single timezone-aware datetime.
"""

import re
from datetime import date, datetime, time, timezone
from typing import Optional

_TWELVE_HOUR = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$")
_TWENTY_FOUR_HOUR = re.compile(r"^(\d{1,2}):(\d{2})$")
_RANGE_SEPARATOR = re.compile(r"\s+-\s+")


class InvalidTimeError(ValueError):
    """A clock time string that cannot be read."""


def normalize_clock_time(value: str) -> str:
    """
    Convert a displayed clock time to 24-hour "HH:MM".

    Ranges use their start time. 12 AM is midnight and 12 PM is noon.

    Raises:
        InvalidTimeError: If the value is not a recognizable clock time
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidTimeError(f"Empty time value: {value!r}")

    text = _RANGE_SEPARATOR.split(value.strip(), maxsplit=1)[0].strip()

    match = _TWELVE_HOUR.match(text)
    if match:
        hours, minutes, modifier = int(match.group(1)), int(match.group(2)), match.group(3).upper()
        if not 1 <= hours <= 12 or minutes > 59:
            raise InvalidTimeError(f"Time out of range: {value!r}")
        if hours == 12:
            hours = 0
        if modifier == "PM":
            hours += 12
        return f"{hours:02d}:{minutes:02d}"

    match = _TWENTY_FOUR_HOUR.match(text)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours > 23 or minutes > 59:
            raise InvalidTimeError(f"Time out of range: {value!r}")
        return f"{hours:02d}:{minutes:02d}"

    raise InvalidTimeError(f"Unrecognized time format: {value!r}")


def combine(day: date, clock: Optional[str] = None) -> datetime:
    """Schedule datetime (UTC) for a day and an optional displayed clock time."""
    if clock is None:
        return datetime.combine(day, time(0, 0), tzinfo=timezone.utc)

    hours, minutes = normalize_clock_time(clock).split(":")
    return datetime.combine(day, time(int(hours), int(minutes)), tzinfo=timezone.utc)
