from motor.motor_asyncio import AsyncIOMotorClient
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)

class Database:
    client: AsyncIOMotorClient = None
    db = None

db = Database()

async def connect_to_mongo():
    """Connect to MongoDB."""
    try:
        logger.info("Connecting to MongoDB...")
        db.client = AsyncIOMotorClient(settings.MONGO_URI)
        db.db = db.client[settings.DB_NAME]
        logger.info("Connected to MongoDB.")

        # Create indexes for collections
        await create_indexes()

    except Exception as e:
        logger.error(f"Could not connect to MongoDB: {e}")
        raise e

async def close_mongo_connection():
    """Close MongoDB connection."""
    if db.client:
        logger.info("Closing MongoDB connection...")
        db.client.close()
        logger.info("MongoDB connection closed.")

async def create_indexes():
    """Create indexes for collections."""
    try:
        # One availability document per provider and calendar date
        await db.db.provider_availability.create_index(
            [("providerId", 1), ("date", 1)],
            unique=True
        )
        await db.db.provider_availability.create_index("timeSlots.id")

        # Bookings collection indexes
        await db.db.bookings.create_index("providerId")
        await db.db.bookings.create_index([("providerId", 1), ("bookingDate", 1)])

        # Service packages collection indexes
        await db.db.service_packages.create_index([("providerId", 1), ("isActive", 1)])

        logger.info("MongoDB indexes created successfully.")
    except Exception as e:
        logger.error(f"Failed to create MongoDB indexes: {e}")
