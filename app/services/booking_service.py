from typing import Dict, Any, List, Optional
from datetime import datetime
from app.db.mongodb import db
from app.schemas.booking import BookingRecord, BookingStatus

def to_booking_record(booking: Dict[str, Any]) -> Optional[BookingRecord]:
    """
    Reduce a stored booking to the fields the availability calendar needs.

    Bookings without a scheduled date or time are skipped.
    """
    booking_date = booking.get("bookingDate")
    booking_time = booking.get("bookingTime")
    if not booking_date or not booking_time:
        return None

    if isinstance(booking_date, datetime):
        booking_date = booking_date.isoformat()

    return BookingRecord(
        id=str(booking.get("_id", booking.get("id", ""))),
        date=str(booking_date),
        time=str(booking_time),
        status=booking.get("status") or BookingStatus.PENDING.value
    )

async def get_provider_bookings(
    provider_id: int,
    status: Optional[BookingStatus] = None,
    limit: int = 1000
) -> List[BookingRecord]:
    """
    Get bookings for a provider
    """
    # Build query
    query: Dict[str, Any] = {"providerId": provider_id}

    if status:
        query["status"] = status.value

    # Execute query
    cursor = db.db.bookings.find(query).sort("bookingDate", 1).limit(limit)
    bookings = await cursor.to_list(length=limit)

    records = []
    for booking in bookings:
        record = to_booking_record(booking)
        if record is not None:
            records.append(record)

    return records
