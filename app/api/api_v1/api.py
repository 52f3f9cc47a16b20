from fastapi import APIRouter
from app.api.api_v1.endpoints import availability, bookings, packages

router = APIRouter()

# Include all routers
router.include_router(availability.router, prefix="/availability", tags=["Availability"])
router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
router.include_router(packages.router, prefix="/packages", tags=["Packages"])
