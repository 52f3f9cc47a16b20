import re
from calendar import monthrange
from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Tuple, Union

DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?\s*([AaPp][Mm])?$")
LONG_DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%A, %B %d, %Y")

def format_date(year: int, month: int, day: int) -> str:
    """
    Build the canonical YYYY-MM-DD key from explicit calendar components.

    Never goes through an ISO/UTC serialization, so the key cannot shift a day
    depending on the server timezone.
    """
    return f"{year:04d}-{month:02d}-{day:02d}"

def date_key(value: date) -> str:
    """Canonical key for a date object"""
    return format_date(value.year, value.month, value.day)

def parse_date(value: str) -> date:
    """Parse a strict YYYY-MM-DD string."""
    match = DATE_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid date format: {value!r}. Use YYYY-MM-DD")
    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day)

def normalize_date(value: Union[str, date, datetime, None]) -> Optional[str]:
    """
    Convert the date shapes bookings arrive in to the canonical key.

    Accepts date/datetime objects, ISO strings with or without a time part
    ("2025-03-10", "2025-03-10T00:00:00.000Z") and long-form strings such as
    "March 10, 2025". Returns None for anything else.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return date_key(value.date())
    if isinstance(value, date):
        return date_key(value)

    text = str(value).strip()
    # ISO timestamps carry the calendar date in the first ten characters
    candidate = text[:10]
    try:
        return date_key(parse_date(candidate))
    except ValueError:
        pass

    for fmt in LONG_DATE_FORMATS:
        try:
            return date_key(datetime.strptime(text, fmt).date())
        except ValueError:
            continue
    return None

def normalize_time(value: Optional[str]) -> Optional[str]:
    """
    Normalize a time of day to HH:MM.

    Handles raw database values ("09:00:00"), short forms ("9:00") and
    12-hour display values ("9:00 AM", "12:30 PM").
    """
    if value is None:
        return None
    match = TIME_PATTERN.match(str(value).strip())
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2))
    meridiem = match.group(4)

    if meridiem:
        if hour < 1 or hour > 12:
            return None
        meridiem = meridiem.upper()
        if meridiem == "AM":
            hour = 0 if hour == 12 else hour
        else:
            hour = 12 if hour == 12 else hour + 12

    return f"{hour:02d}:{minute:02d}"

def time_to_minutes(value: str) -> int:
    """Minutes since midnight for an HH:MM string"""
    normalized = normalize_time(value)
    if normalized is None:
        raise ValueError(f"Invalid time format: {value!r}. Use HH:MM format")
    hours, minutes = normalized.split(":")
    return int(hours) * 60 + int(minutes)

def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of a month"""
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])

def year_bounds(year: int) -> Tuple[date, date]:
    """First and last day of a year"""
    return date(year, 1, 1), date(year, 12, 31)

def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end, inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
