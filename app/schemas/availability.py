from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
import uuid

from app.utils.dates import normalize_time, parse_date, date_key

TEMP_ID_PREFIX = "tmp-"
# Durable slot ids are derived from the slot itself so replaying a save is idempotent
SLOT_ID_NAMESPACE = uuid.UUID("5f1d7c1e-3c35-4d8e-9b7c-0c9f0a6b2d41")

def new_temp_slot_id() -> str:
    """Client-side id for a slot the remote store has not persisted yet"""
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}"

def is_temp_slot_id(slot_id: Optional[str]) -> bool:
    return not slot_id or slot_id.startswith(TEMP_ID_PREFIX)

def durable_slot_id(provider_id: int, day: str, start: str, end: str) -> str:
    """Id the remote store gives a slot saved with a temporary id"""
    return uuid.uuid5(SLOT_ID_NAMESPACE, f"{provider_id}:{day}:{start}-{end}").hex

class TimeSlot(BaseModel):
    id: str = Field(default_factory=new_temp_slot_id)
    start: str  # HH:MM
    end: str  # HH:MM
    availableServices: List[int] = []
    # Derived from bookings on every reconciliation pass, never sent to the server
    isBooked: bool = False

    @field_validator("start", "end", mode="before")
    @classmethod
    def _normalize_time(cls, value: Any) -> str:
        normalized = normalize_time(value)
        if normalized is None:
            raise ValueError("Invalid time format. Use HH:MM format")
        return normalized

    @field_validator("availableServices", mode="before")
    @classmethod
    def _coerce_services(cls, value: Any) -> List[int]:
        if value is None:
            return []
        return value

    @property
    def label(self) -> str:
        return f"{self.start} - {self.end}"

class DayAvailability(BaseModel):
    date: str  # YYYY-MM-DD
    isAvailable: bool = False
    timeSlots: List[TimeSlot] = []
    # Derived from bookings on every reconciliation pass, never sent to the server
    hasBookings: bool = False

    @field_validator("date", mode="before")
    @classmethod
    def _canonical_date(cls, value: Any) -> str:
        return date_key(parse_date(str(value)))

    @field_validator("timeSlots", mode="before")
    @classmethod
    def _coerce_slots(cls, value: Any) -> List[Any]:
        if value is None:
            return []
        return value

    @model_validator(mode="after")
    def _keep_coherent(self) -> "DayAvailability":
        # Slots are always ordered by start time and a day with slots is always open
        self.timeSlots.sort(key=lambda slot: slot.start)
        if self.timeSlots:
            self.isAvailable = True
        return self

    def to_payload(self) -> Dict[str, Any]:
        """Wire shape of the record, without the derived booking flags."""
        return self.dict(exclude={"hasBookings": True, "timeSlots": {"__all__": {"isBooked"}}})

    @classmethod
    def empty(cls, day: str) -> "DayAvailability":
        return cls(date=day, isAvailable=False, timeSlots=[])

class SaveDayRequest(BaseModel):
    providerId: int = Field(..., gt=0)
    availability: DayAvailability

class SaveBatchRequest(BaseModel):
    providerId: int = Field(..., gt=0)
    # Records are validated one by one so a malformed day only fails itself
    availabilityBatch: List[Dict[str, Any]]

class BatchError(BaseModel):
    date: Optional[str] = None
    error: str

class BatchSaveResponse(BaseModel):
    success: bool = True
    message: str = ""
    successCount: int = 0
    errorCount: int = 0
    errors: List[BatchError] = []

class SaveDayResponse(BaseModel):
    success: bool = True
    message: str = ""
    availability: DayAvailability

class DeleteSlotResponse(BaseModel):
    success: bool = True
    message: str = ""
    date: str
    slotId: str
    remainingSlots: int

class AvailabilityResponse(BaseModel):
    availability: List[DayAvailability] = []
