"""
Annotate availability with booking state.

``isBooked`` and ``hasBookings`` are pure functions of (availability,
bookings). They are recomputed from scratch on every pass and never patched
incrementally.
"""
from typing import Iterable, List, Optional, Set, Tuple

from app.schemas.availability import DayAvailability, TimeSlot
from app.schemas.booking import BookingRecord
from app.utils.dates import normalize_date, normalize_time

BookingKey = Tuple[str, str]


def booking_key(booking: BookingRecord) -> Optional[BookingKey]:
    """(YYYY-MM-DD, HH:MM) for a booking, or None when either part is unreadable."""
    day = normalize_date(booking.date)
    time = normalize_time(booking.time)
    if day is None or time is None:
        return None
    return day, time


def active_booking_keys(bookings: Iterable[BookingRecord]) -> Set[BookingKey]:
    keys = set()
    for booking in bookings:
        if booking.is_cancelled:
            continue
        key = booking_key(booking)
        if key is not None:
            keys.add(key)
    return keys


def reconcile(days: Iterable[DayAvailability], bookings: Iterable[BookingRecord]) -> List[DayAvailability]:
    """
    Return annotated copies of ``days``; the inputs are left untouched.

    A slot is booked when a non-cancelled booking exists for its date and
    start time. A day has bookings when any of its slots is booked or when a
    booking exists for the date even though its slot has since been removed.
    """
    keys = active_booking_keys(bookings)
    booked_dates = {day for day, _ in keys}

    annotated = []
    for day in days:
        slots = [
            TimeSlot(
                id=slot.id,
                start=slot.start,
                end=slot.end,
                availableServices=list(slot.availableServices),
                isBooked=(day.date, slot.start) in keys,
            )
            for slot in day.timeSlots
        ]
        annotated.append(DayAvailability(
            date=day.date,
            isAvailable=day.isAvailable,
            timeSlots=slots,
            hasBookings=any(slot.isBooked for slot in slots) or day.date in booked_dates,
        ))
    return annotated
