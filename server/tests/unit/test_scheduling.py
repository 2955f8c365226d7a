"""Unit tests for clock-time normalization."""

from datetime import date, datetime, timezone

import pytest

from marketplace.services.scheduling import InvalidTimeError, combine, normalize_clock_time


@pytest.mark.parametrize(
    "displayed, expected",
    [
        ("12:00 AM", "00:00"),
        ("12:30 PM", "12:30"),
        ("1:15 PM", "13:15"),
        ("9:05 AM", "09:05"),
        ("11:59 pm", "23:59"),
        ("9:05AM", "09:05"),
        ("14:30", "14:30"),
        ("7:00", "07:00"),
        ("10:00 AM - 10:30 AM", "10:00"),
        ("  3:45 PM  ", "15:45"),
    ],
)
def test_normalize_clock_time(displayed, expected):
    assert normalize_clock_time(displayed) == expected


@pytest.mark.parametrize("displayed", ["", "   ", "noon", "25:00", "10:75", "13:00 PM", "0:30 AM", "10"])
def test_normalize_rejects_unreadable_times(displayed):
    with pytest.raises(InvalidTimeError):
        normalize_clock_time(displayed)


def test_invalid_time_is_a_value_error():
    """Callers that only know about ValueError still catch it."""
    with pytest.raises(ValueError):
        normalize_clock_time("later")


def test_combine_with_time():
    scheduled = combine(date(2026, 3, 14), "1:15 PM")

    assert scheduled == datetime(2026, 3, 14, 13, 15, tzinfo=timezone.utc)


def test_combine_without_time_is_midnight_utc():
    scheduled = combine(date(2026, 3, 14))

    assert scheduled == datetime(2026, 3, 14, 0, 0, tzinfo=timezone.utc)
    assert scheduled.tzinfo is timezone.utc
