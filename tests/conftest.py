import asyncio
from datetime import date
from typing import Dict, List, Optional, Set

import pytest

from app.schemas.availability import (
    BatchError, BatchSaveResponse, DayAvailability, DeleteSlotResponse, durable_slot_id
)
from app.schemas.booking import BookingRecord
from app.schemas.package import ServicePackage
from app.scheduling.errors import ServerRejected
from app.scheduling.store import AvailabilityStore
from app.scheduling.sync import SyncController

PROVIDER_ID = 7
TODAY = date(2025, 3, 1)  # a Saturday
DAY = "2025-03-10"  # a Monday

# Test data
test_packages = [
    ServicePackage(id=1, name="Private Cremation", price=250),
    ServicePackage(id=2, name="Paw Print Keepsake", price=40),
]


def make_day(day: str, *windows, services=(1,)) -> DayAvailability:
    """Day record with one slot per (start, end, id) window."""
    return DayAvailability(
        date=day,
        isAvailable=bool(windows),
        timeSlots=[
            {"id": slot_id, "start": start, "end": end, "availableServices": list(services)}
            for start, end, slot_id in windows
        ],
    )


class FakeRemote:
    """
    In-memory stand-in for AvailabilityClient.

    ``save_gates`` holds one event per upcoming save_day call; a save waits
    on its event before resolving. ``fail_with`` maps an operation name to
    the error it raises.
    """

    def __init__(self):
        self.days: Dict[str, DayAvailability] = {}
        self.bookings: List[BookingRecord] = []
        self.packages: List[ServicePackage] = list(test_packages)
        self.saved: List[DayAvailability] = []
        self.batches: List[List[DayAvailability]] = []
        self.deleted: List[tuple] = []
        self.fail_with: Dict[str, Exception] = {}
        self.save_gates: List[Optional[asyncio.Event]] = []
        self.reject_dates: Set[str] = set()
        self.fetch_calls = 0

    def _maybe_fail(self, operation: str) -> None:
        error = self.fail_with.get(operation)
        if error is not None:
            raise error

    async def fetch_availability(self, provider_id, start_date, end_date, timeout=None):
        self.fetch_calls += 1
        self._maybe_fail("fetch_availability")
        return [day for key, day in sorted(self.days.items()) if start_date <= key <= end_date]

    async def fetch_bookings(self, provider_id, timeout=None):
        self._maybe_fail("fetch_bookings")
        return list(self.bookings)

    async def fetch_packages(self, provider_id, timeout=None):
        self._maybe_fail("fetch_packages")
        return list(self.packages)

    async def save_day(self, provider_id, day):
        gate = self.save_gates.pop(0) if self.save_gates else None
        if gate is not None:
            await gate.wait()
        self._maybe_fail("save_day")
        self.saved.append(day)
        self.days[day.date] = day
        return day

    async def save_batch(self, provider_id, days):
        self._maybe_fail("save_batch")
        self.batches.append(list(days))
        errors = []
        for day in days:
            if day.date in self.reject_dates:
                errors.append(BatchError(date=day.date, error="Cannot set availability for past dates"))
            else:
                self.days[day.date] = day
        succeeded = len(days) - len(errors)
        return BatchSaveResponse(
            success=succeeded > 0,
            message=f"{succeeded} days processed successfully.",
            successCount=succeeded,
            errorCount=len(errors),
            errors=errors,
        )

    async def delete_slot(self, provider_id, date, slot_id):
        self._maybe_fail("delete_slot")
        self.deleted.append((date, slot_id))
        day = self.days.get(date)
        if day is None:
            raise ServerRejected(404, "Time slot not found")
        remaining = [
            slot for slot in day.timeSlots
            if slot_id not in (slot.id, durable_slot_id(provider_id, date, slot.start, slot.end))
        ]
        if len(remaining) == len(day.timeSlots):
            raise ServerRejected(404, "Time slot not found")
        self.days[date] = DayAvailability(date=date, isAvailable=day.isAvailable, timeSlots=remaining)
        return DeleteSlotResponse(
            message="Time slot deleted successfully",
            date=date,
            slotId=slot_id,
            remainingSlots=len(remaining),
        )


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def store():
    return AvailabilityStore(PROVIDER_ID)


@pytest.fixture
def controller(remote, store):
    return SyncController(
        PROVIDER_ID,
        remote,
        store,
        refresh_interval=0.01,
        request_timeout=1,
        max_batch_size=500,
        rollback_on_rejection=False,
        today=lambda: TODAY,
    )
