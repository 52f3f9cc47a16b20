from fastapi import APIRouter, HTTPException, Query, status
import logging

from app.schemas.package import PackagesResponse
from app.services.package_service import get_provider_packages

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get("", response_model=PackagesResponse)
async def get_packages_for_provider(
    providerId: int = Query(..., gt=0, description="Provider ID")
):
    """
    Get the service packages a provider can attach to time slots
    """
    try:
        packages = await get_provider_packages(providerId)
        return {"packages": packages}
    except Exception as e:
        logger.error(f"Error in get_packages_for_provider: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch provider packages"
        )
