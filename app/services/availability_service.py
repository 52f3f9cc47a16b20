from typing import Dict, Any, List, Optional, Tuple
from datetime import date, datetime, timedelta
import logging

from pydantic import ValidationError

from app.db.provider_availability import get_days_in_range, get_day, replace_day, pull_time_slot
from app.schemas.availability import (
    DayAvailability, TimeSlot, BatchError, BatchSaveResponse, is_temp_slot_id, durable_slot_id
)
from app.scheduling.validation import check_range, overlaps
from app.utils.dates import parse_date, date_key, month_bounds, iter_dates

logger = logging.getLogger(__name__)

DEFAULT_RANGE_DAYS = 30

def resolve_range(
    start_date: Optional[str],
    end_date: Optional[str],
    month: Optional[str],
    today: Optional[date] = None
) -> Tuple[date, date]:
    """
    Work out the inclusive date range of an availability query.

    An explicit start/end pair wins, then a YYYY-MM month token, otherwise
    today plus DEFAULT_RANGE_DAYS.
    """
    if start_date and end_date:
        start, end = parse_date(start_date), parse_date(end_date)
    elif month:
        try:
            year, month_number = (int(part) for part in month.split("-"))
            start, end = month_bounds(year, month_number)
        except ValueError:
            raise ValueError(f"Invalid month format: {month!r}. Use YYYY-MM")
    else:
        start = today or date.today()
        end = start + timedelta(days=DEFAULT_RANGE_DAYS)

    if end < start:
        raise ValueError("endDate must not be before startDate")
    return start, end

def build_range(start: date, end: date, documents: List[Dict[str, Any]]) -> List[DayAvailability]:
    """
    Expand stored documents into one record per date of the range.

    Dates without a document come back closed with no slots.
    """
    stored = {doc["date"]: doc for doc in documents}
    days = []
    for current in iter_dates(start, end):
        key = date_key(current)
        doc = stored.get(key)
        if doc is None:
            days.append(DayAvailability.empty(key))
            continue
        days.append(DayAvailability(
            date=key,
            isAvailable=bool(doc.get("isAvailable")),
            timeSlots=[
                TimeSlot(
                    id=str(slot.get("id")),
                    start=slot["start"],
                    end=slot["end"],
                    availableServices=slot.get("availableServices") or []
                )
                for slot in doc.get("timeSlots", [])
            ]
        ))
    return days

def prepare_day(provider_id: int, day: DayAvailability, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Validate a day record and turn it into the stored document.

    Raises ValueError (or one of the slot validation errors, which subclass it)
    when the record cannot be stored.
    """
    today = today or date.today()
    if parse_date(day.date) < today:
        raise ValueError("Cannot set availability for past dates")

    slots = []
    previous = None
    for slot in day.timeSlots:
        check_range(slot.start, slot.end)
        if previous is not None and overlaps(previous, slot):
            raise ValueError(f"Time slot {slot.label} overlaps with {previous.label}")
        previous = slot

        slot_id = slot.id
        if is_temp_slot_id(slot_id):
            slot_id = durable_slot_id(provider_id, day.date, slot.start, slot.end)

        slots.append({
            "id": slot_id,
            "start": slot.start,
            "end": slot.end,
            # 0 is the placeholder used while a provider had no packages
            "availableServices": [service for service in slot.availableServices if service != 0],
        })

    return {
        "date": day.date,
        "isAvailable": day.isAvailable or bool(slots),
        "timeSlots": slots,
        "updatedAt": datetime.utcnow(),
    }

async def get_availability(provider_id: int, start: date, end: date) -> List[DayAvailability]:
    """
    Get a provider's availability for every date of a range
    """
    documents = await get_days_in_range(provider_id, date_key(start), date_key(end))
    logger.info(f"Found {len(documents)} stored days for provider {provider_id} from {start} to {end}")
    return build_range(start, end, documents)

async def save_day(provider_id: int, day: DayAvailability, today: Optional[date] = None) -> DayAvailability:
    """
    Replace one day's availability
    """
    document = prepare_day(provider_id, day, today)
    success = await replace_day(provider_id, document)
    if not success:
        raise RuntimeError(f"Write for {day.date} was not acknowledged")
    return DayAvailability(
        date=document["date"],
        isAvailable=document["isAvailable"],
        timeSlots=document["timeSlots"]
    )

async def save_batch(
    provider_id: int,
    availability_batch: List[Dict[str, Any]],
    today: Optional[date] = None
) -> BatchSaveResponse:
    """
    Replace many days at once.

    Every record is handled on its own; a failing record is reported by date
    and never stops the rest of the batch.
    """
    success_count = 0
    errors: List[BatchError] = []

    for raw_day in availability_batch:
        raw_date = raw_day.get("date") if isinstance(raw_day, dict) else None
        raw_date = str(raw_date) if raw_date is not None else None
        try:
            day = DayAvailability(**raw_day)
            document = prepare_day(provider_id, day, today)
            if not await replace_day(provider_id, document):
                raise RuntimeError("Write was not acknowledged")
            success_count += 1
        except ValidationError as e:
            message = "; ".join(error["msg"] for error in e.errors())
            errors.append(BatchError(date=raw_date, error=message))
        except (ValueError, RuntimeError, TypeError) as e:
            logger.warning(f"Error processing day {raw_date} for provider {provider_id}: {e}")
            errors.append(BatchError(date=raw_date, error=str(e)))

    return BatchSaveResponse(
        success=success_count > 0 or not availability_batch,
        message=f"Batch availability update completed. {success_count} days processed successfully.",
        successCount=success_count,
        errorCount=len(errors),
        errors=errors
    )

async def delete_time_slot(provider_id: int, date: str, slot_id: str) -> Optional[int]:
    """
    Remove a single slot from a date.

    Returns the number of slots left on that date, or None when the slot
    does not exist.
    """
    removed = await pull_time_slot(provider_id, date, slot_id)
    if not removed:
        return None

    remaining = await get_day(provider_id, date)
    return len(remaining.get("timeSlots", [])) if remaining else 0
