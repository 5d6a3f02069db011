"""Application configuration and settings."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./db/mecasync.db")

    # Application Configuration
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Sync Configuration
    SYNC_INTERVAL_SECONDS: int = int(os.getenv("SYNC_INTERVAL_SECONDS", "3600"))
    UNKNOWN_DEVICE_ID: str = "unknown"

    # Activity ingestion
    ACTIVITY_BATCH_MAX_SIZE: int = int(os.getenv("ACTIVITY_BATCH_MAX_SIZE", "1000"))
    ACTIVITY_BATCH_DEADLINE_SECONDS: float = float(os.getenv("ACTIVITY_BATCH_DEADLINE_SECONDS", "20"))

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"


settings = Settings()
