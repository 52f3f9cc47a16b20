from fastapi import APIRouter, HTTPException, Query, status
from typing import Optional
import logging

from app.core.config import settings
from app.schemas.availability import (
    AvailabilityResponse, SaveDayRequest, SaveDayResponse,
    SaveBatchRequest, BatchSaveResponse, DeleteSlotResponse
)
from app.services.availability_service import (
    resolve_range, get_availability, save_day, save_batch, delete_time_slot
)
from app.utils.dates import parse_date

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("", response_model=AvailabilityResponse)
async def get_provider_availability(
    providerId: int = Query(..., gt=0, description="Provider ID"),
    startDate: Optional[str] = Query(None, description="First date (YYYY-MM-DD)"),
    endDate: Optional[str] = Query(None, description="Last date (YYYY-MM-DD)"),
    month: Optional[str] = Query(None, description="Month token (YYYY-MM)")
):
    """
    Get a provider's availability for every date of a range.
    Defaults to the next 30 days when no range is given.
    """
    try:
        start, end = resolve_range(startDate, endDate, month)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    try:
        days = await get_availability(providerId, start, end)
        return {"availability": days}
    except Exception as e:
        logger.error(f"Error in get_provider_availability: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error while fetching availability data"
        )

@router.post("", response_model=SaveDayResponse)
async def save_provider_day(request: SaveDayRequest):
    """
    Replace the availability of a single day
    """
    try:
        saved = await save_day(request.providerId, request.availability)
        return {
            "success": True,
            "message": f"Availability for {saved.date} updated successfully",
            "availability": saved
        }
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        logger.error(f"Error in save_provider_day: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save availability data"
        )

@router.post("/batch", response_model=BatchSaveResponse)
async def save_provider_batch(request: SaveBatchRequest):
    """
    Replace the availability of many days at once.
    Each day succeeds or fails on its own; failures are reported by date.
    """
    if len(request.availabilityBatch) > settings.MAX_BATCH_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Batch size too large. Maximum {settings.MAX_BATCH_SIZE} days allowed per request."
        )

    try:
        result = await save_batch(request.providerId, request.availabilityBatch)
        logger.info(
            f"Batch for provider {request.providerId}: "
            f"{result.successCount} saved, {result.errorCount} failed"
        )
        return result
    except Exception as e:
        logger.error(f"Batch availability update error: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update availability"
        )

@router.delete("/timeslot", response_model=DeleteSlotResponse)
async def delete_provider_time_slot(
    slotId: str = Query(..., min_length=1, description="Time slot ID"),
    providerId: int = Query(..., gt=0, description="Provider ID"),
    date: str = Query(..., description="Date of the slot (YYYY-MM-DD)")
):
    """
    Remove exactly one time slot from a provider's day
    """
    try:
        parse_date(date)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    try:
        remaining = await delete_time_slot(providerId, date, slotId)
    except Exception as e:
        logger.error(f"Error in delete_provider_time_slot: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error while deleting time slot"
        )

    if remaining is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Time slot not found"
        )

    return {
        "success": True,
        "message": "Time slot deleted successfully",
        "date": date,
        "slotId": slotId,
        "remainingSlots": remaining
    }
