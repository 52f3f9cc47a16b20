from datetime import date, datetime

import pytest

from app.utils.dates import (
    date_key, format_date, iter_dates, month_bounds, normalize_date, normalize_time,
    parse_date, time_to_minutes, year_bounds
)


def test_format_date_pads_components():
    assert format_date(2025, 3, 1) == "2025-03-01"
    assert date_key(date(2025, 12, 31)) == "2025-12-31"


def test_parse_date_is_strict():
    assert parse_date("2025-03-10") == date(2025, 3, 10)
    for bad in ("2025-3-10", "10/03/2025", "2025-02-30", ""):
        with pytest.raises(ValueError):
            parse_date(bad)


@pytest.mark.parametrize("value", [
    "2025-03-10",
    "2025-03-10T00:00:00.000Z",
    "2025-03-10T23:30:00+05:30",
    "March 10, 2025",
    "Mar 10, 2025",
    "Monday, March 10, 2025",
    date(2025, 3, 10),
    datetime(2025, 3, 10, 23, 59),
])
def test_normalize_date_accepts_booking_shapes(value):
    # The calendar date is taken as written, never shifted by a timezone
    assert normalize_date(value) == "2025-03-10"


def test_normalize_date_rejects_garbage():
    assert normalize_date(None) is None
    assert normalize_date("next tuesday") is None


@pytest.mark.parametrize("value, expected", [
    ("09:00", "09:00"),
    ("9:00", "09:00"),
    ("09:00:00", "09:00"),
    ("9:00 AM", "09:00"),
    ("9:30 pm", "21:30"),
    ("12:30 PM", "12:30"),
    ("12:00 AM", "00:00"),
    ("23:59", "23:59"),
])
def test_normalize_time(value, expected):
    assert normalize_time(value) == expected


@pytest.mark.parametrize("value", ["24:00", "13:00 PM", "0:00 AM", "9", "noon", None])
def test_normalize_time_rejects_invalid(value):
    assert normalize_time(value) is None


def test_time_to_minutes():
    assert time_to_minutes("00:00") == 0
    assert time_to_minutes("17:30") == 17 * 60 + 30
    with pytest.raises(ValueError):
        time_to_minutes("25:00")


def test_bounds_and_iteration():
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert year_bounds(2025) == (date(2025, 1, 1), date(2025, 12, 31))

    days = list(iter_dates(date(2025, 2, 27), date(2025, 3, 2)))
    assert [date_key(d) for d in days] == ["2025-02-27", "2025-02-28", "2025-03-01", "2025-03-02"]
    assert list(iter_dates(date(2025, 3, 2), date(2025, 3, 1))) == []
