from pydantic_settings import BaseSettings
from typing import List
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = os.getenv("APP_NAME", "PawRest Availability")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # MongoDB Settings
    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    DB_NAME: str = os.getenv("DB_NAME", "pawrest_db")

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",  # Next.js dashboard
    ]

    # Remote store limits
    MAX_BATCH_SIZE: int = int(os.getenv("MAX_BATCH_SIZE", "500"))

    # Scheduling client
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8000/api/v1")
    SYNC_REFRESH_INTERVAL_SECONDS: float = float(os.getenv("SYNC_REFRESH_INTERVAL_SECONDS", "60"))
    SYNC_REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("SYNC_REQUEST_TIMEOUT_SECONDS", "10"))
    AVAILABILITY_CACHE_DIR: str = os.getenv("AVAILABILITY_CACHE_DIR", "./.availability_cache")
    ROLLBACK_ON_REJECTION: bool = os.getenv("ROLLBACK_ON_REJECTION", "false").lower() in ("1", "true", "yes")

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
