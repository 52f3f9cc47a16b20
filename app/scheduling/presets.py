"""
Recurring availability presets and the batch summary they report.

A preset is declarative: every matching date is set to exactly one slot,
whatever was there before.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from app.schemas.availability import BatchError, BatchSaveResponse, DayAvailability, TimeSlot
from app.scheduling.errors import PartialBatchFailure
from app.scheduling.validation import check_range
from app.utils.dates import date_key, iter_dates, parse_date, year_bounds

DayPredicate = Callable[[date], bool]


def weekdays(day: date) -> bool:
    return day.weekday() < 5


def weekends(day: date) -> bool:
    return day.weekday() >= 5


PRESETS: Dict[str, DayPredicate] = {
    "weekdays": weekdays,
    "weekends": weekends,
}


@dataclass(frozen=True)
class TimeWindow:
    start: str
    end: str

    def validate(self) -> None:
        check_range(self.start, self.end)


@dataclass
class BatchSummary:
    """One consolidated report for a batch save, never one per date."""
    attempted: int
    succeeded: int
    errors: List[BatchError] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def is_partial(self) -> bool:
        return bool(self.errors)

    def message(self) -> str:
        text = f"Updated {self.succeeded} of {self.attempted} days"
        if self.errors:
            text += f"; {self.failed} failed"
        return text

    def as_error(self) -> Optional[PartialBatchFailure]:
        return PartialBatchFailure(self) if self.errors else None

    def add_response(self, response: BatchSaveResponse) -> None:
        self.succeeded += response.successCount
        self.errors.extend(response.errors)

    def add_failure(self, days: Iterable[DayAvailability], error: Exception) -> None:
        """Record every day of a chunk whose request failed outright."""
        self.errors.extend(BatchError(date=day.date, error=str(error)) for day in days)


def generate_recurring(
    year: int,
    predicate: DayPredicate,
    window: TimeWindow,
    services: Sequence[int],
    today: Optional[date] = None,
) -> List[DayAvailability]:
    """
    One single-slot record for every date of ``year`` that matches
    ``predicate`` and is not before ``today``.
    """
    window.validate()
    today = today or date.today()
    start, end = year_bounds(year)
    start = max(start, today)

    return [
        DayAvailability(
            date=date_key(current),
            isAvailable=True,
            timeSlots=[TimeSlot(start=window.start, end=window.end, availableServices=list(services))],
        )
        for current in iter_dates(start, end)
        if predicate(current)
    ]


def cleared_days(days: Iterable[DayAvailability], today: Optional[date] = None) -> List[DayAvailability]:
    """Closed, empty copies of every day from ``today`` on."""
    today = today or date.today()
    return [
        DayAvailability.empty(day.date)
        for day in days
        if parse_date(day.date) >= today
    ]
