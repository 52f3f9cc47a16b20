from fastapi import APIRouter, HTTPException, Query, status
from typing import Optional
import logging

from app.schemas.booking import BookingsResponse, BookingStatus
from app.services.booking_service import get_provider_bookings

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("", response_model=BookingsResponse)
async def get_bookings_for_provider(
    providerId: int = Query(..., gt=0, description="Provider ID"),
    status_filter: Optional[BookingStatus] = Query(None, alias="status")
):
    """
    Get a provider's bookings with the date, time and status of each
    """
    try:
        bookings = await get_provider_bookings(providerId, status_filter)
        return {"bookings": bookings}
    except Exception as e:
        logger.error(f"Error in get_bookings_for_provider: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch bookings"
        )
