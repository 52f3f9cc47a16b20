from app.schemas.booking import BookingRecord
from app.scheduling.reconcile import active_booking_keys, booking_key, reconcile

from conftest import DAY, make_day


def booking(date=DAY, time="09:00", status="confirmed"):
    return BookingRecord(id="b1", date=date, time=time, status=status)


def test_booked_slot_and_day_are_flagged():
    days = [make_day(DAY, ("09:00", "10:00", "slot-a"), ("10:00", "11:00", "slot-b"))]

    [day] = reconcile(days, [booking()])

    assert [s.isBooked for s in day.timeSlots] == [True, False]
    assert day.hasBookings is True


def test_cancelled_booking_is_ignored():
    days = [make_day(DAY, ("09:00", "10:00", "slot-a"))]

    [day] = reconcile(days, [booking(status="cancelled")])

    assert day.timeSlots[0].isBooked is False
    assert day.hasBookings is False


def test_booking_formats_are_normalised():
    days = [make_day(DAY, ("09:00", "10:00", "slot-a"), ("14:30", "15:30", "slot-b"))]
    bookings = [
        booking(date="2025-03-10T00:00:00.000Z", time="09:00:00"),
        booking(date="March 10, 2025", time="2:30 PM", status="PENDING"),
    ]

    [day] = reconcile(days, bookings)

    assert all(s.isBooked for s in day.timeSlots)


def test_booking_without_matching_slot_still_marks_day():
    # The slot was removed after the booking was taken
    days = [make_day(DAY, ("11:00", "12:00", "slot-a"))]

    [day] = reconcile(days, [booking(time="09:00")])

    assert day.timeSlots[0].isBooked is False
    assert day.hasBookings is True


def test_reconcile_is_pure():
    days = [make_day(DAY, ("09:00", "10:00", "slot-a")), make_day("2025-03-11")]
    bookings = [booking()]
    before = [day.dict() for day in days]

    first = reconcile(days, bookings)
    second = reconcile(days, bookings)

    assert [day.dict() for day in first] == [day.dict() for day in second]
    assert [day.dict() for day in days] == before
    assert days[0].timeSlots[0].isBooked is False


def test_flags_are_recomputed_not_carried_over():
    [booked] = reconcile([make_day(DAY, ("09:00", "10:00", "slot-a"))], [booking()])

    [again] = reconcile([booked], [])

    assert again.timeSlots[0].isBooked is False
    assert again.hasBookings is False


def test_unreadable_bookings_are_skipped():
    assert booking_key(booking(time="sometime")) is None
    keys = active_booking_keys([booking(), booking(date="soon"), booking(time="14:00", status="cancelled")])
    assert keys == {(DAY, "09:00")}
