"""
Pure checks run before a slot is added to a day.

Nothing here performs I/O; every input comes from data the caller already
fetched.
"""
from dataclasses import dataclass
from typing import Optional, Sequence

from app.schemas.availability import DayAvailability, TimeSlot
from app.schemas.package import ServicePackage
from app.scheduling.errors import InvalidRange, NoServiceSelected, SlotConflict
from app.utils.dates import time_to_minutes

NO_PACKAGES_WARNING = (
    "No packages available. Time slot will be created but won't be visible "
    "to customers until packages are added."
)


@dataclass
class SlotCheck:
    """Result of a successful validation; a warning does not block creation."""
    warning: Optional[str] = None

    @property
    def customer_visible(self) -> bool:
        return self.warning is None


def overlaps(a: TimeSlot, b: TimeSlot) -> bool:
    """Half-open interval overlap: touching endpoints do not conflict."""
    return (
        time_to_minutes(a.start) < time_to_minutes(b.end)
        and time_to_minutes(a.end) > time_to_minutes(b.start)
    )


def check_range(start: str, end: str) -> None:
    if time_to_minutes(end) <= time_to_minutes(start):
        raise InvalidRange(start, end)


def check_services(selected: Sequence[int], packages: Sequence[ServicePackage]) -> Optional[str]:
    """Returns a warning when the provider has no packages at all."""
    if not packages:
        return NO_PACKAGES_WARNING
    if not selected:
        raise NoServiceSelected()
    return None


def find_conflict(day: Optional[DayAvailability], candidate: TimeSlot) -> Optional[TimeSlot]:
    if day is None:
        return None
    for slot in day.timeSlots:
        if slot.id != candidate.id and overlaps(candidate, slot):
            return slot
    return None


def validate_new_slot(
    day: Optional[DayAvailability],
    candidate: TimeSlot,
    packages: Sequence[ServicePackage] = (),
) -> SlotCheck:
    """
    Gate a candidate slot against the day it is being added to.

    Raises InvalidRange, NoServiceSelected or SlotConflict (carrying the
    overlapping slot). Returns a SlotCheck whose warning is set when the
    provider has no packages configured yet.
    """
    check_range(candidate.start, candidate.end)
    warning = check_services(candidate.availableServices, packages)

    conflicting = find_conflict(day, candidate)
    if conflicting is not None:
        raise SlotConflict(candidate, conflicting)

    return SlotCheck(warning=warning)
