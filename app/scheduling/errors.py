"""
Error kinds surfaced by the scheduling core.

Validation errors are raised before any I/O. Sync errors are what the HTTP
client turns transport problems into; nothing outside ``app.scheduling.client``
ever sees an ``httpx`` exception.
"""
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from app.schemas.availability import TimeSlot
    from app.scheduling.presets import BatchSummary


class SchedulingError(Exception):
    """Base class for every scheduling failure."""


class SlotValidationError(SchedulingError, ValueError):
    """A request rejected client-side, before any network call."""


class InvalidRange(SlotValidationError):
    def __init__(self, start: str, end: str):
        self.start = start
        self.end = end
        super().__init__(f"End time must be after start time ({start} - {end})")


class SlotConflict(SlotValidationError):
    def __init__(self, candidate: "TimeSlot", conflicting: "TimeSlot"):
        self.candidate = candidate
        self.conflicting = conflicting
        super().__init__(
            f"Time slot conflict: {candidate.label} overlaps with an existing time slot ({conflicting.label})"
        )


class NoServiceSelected(SlotValidationError):
    def __init__(self):
        super().__init__("Please select at least one service")


class PastDate(SlotValidationError):
    def __init__(self, date: str):
        self.date = date
        super().__init__(f"Cannot change availability for a past date ({date})")


class SlotsStillPresent(SlotValidationError):
    def __init__(self, date: str, count: int):
        self.date = date
        self.count = count
        super().__init__(f"{date} still has {count} time slot(s); remove them before closing the day")


class SlotNotFound(SchedulingError, LookupError):
    def __init__(self, date: str, slot_id: str):
        self.date = date
        self.slot_id = slot_id
        super().__init__(f"Time slot {slot_id} not found on {date}")


class SyncError(SchedulingError):
    """A recoverable failure talking to the remote store."""


class NetworkFailure(SyncError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SyncTimeout(NetworkFailure):
    """Handled exactly like a network failure."""


class ServerRejected(SyncError):
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Server rejected the request ({status_code}): {detail}")


class PartialBatchFailure(SyncError):
    def __init__(self, summary: "BatchSummary"):
        self.summary = summary
        super().__init__(summary.message())
