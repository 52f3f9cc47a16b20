from pydantic import BaseModel
from typing import Optional, List
from enum import Enum

class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class BookingRecord(BaseModel):
    id: Optional[str] = None
    date: str  # "2025-03-10" or "2025-03-10T00:00:00.000Z"
    time: str  # "09:00:00" or "09:00 AM"
    status: str = BookingStatus.PENDING.value

    @property
    def is_cancelled(self) -> bool:
        return self.status.lower() == BookingStatus.CANCELLED.value

class BookingsResponse(BaseModel):
    bookings: List[BookingRecord] = []
