"""
Core settings and environment variables for Civic Report Hub.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Civic Report Hub"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # CORS - Frontend URLs allowed to access this API (comma separated)
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Report store: "memory" (local development) or "firestore"
    STORE_BACKEND: str = "memory"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    FIRESTORE_REPORTS_COLLECTION: str = "reports"
    FIRESTORE_COUNTERS_COLLECTION: str = "counters"

    # Image similarity (Gemini Vision)
    AI_ENABLED: bool = True  # If False, only the file-size estimator is used
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    AI_TIMEOUT_SECONDS: float = 30.0
    SIMILARITY_MAX_RETRIES: int = 3
    SIMILARITY_RETRY_DELAY_SECONDS: float = 5.0
    UPLOADS_DIR: str = "./uploads"  # Base directory for relative photo references

    # Duplicate detection
    DUPLICATE_RADIUS_METERS: float = 50.0
    DUPLICATE_SIMILARITY_THRESHOLD: float = 80.0
    DUPLICATE_MATCH_STRATEGY: str = "first"  # "first" or "best"

    # SLA policy: optional JSON file with "severity_hours" and "category_factors"
    SLA_POLICY_PATH: Optional[str] = None

    # Escalation scheduler
    ESCALATION_SCHEDULER_ENABLED: bool = True
    ESCALATION_SWEEP_INTERVAL_MINUTES: float = 30.0
    ESCALATION_SWEEP_ON_START: bool = False

    # Escalation notifications: webhook if configured, log sink otherwise
    ESCALATION_WEBHOOK_URL: Optional[str] = None
    ESCALATION_WEBHOOK_TIMEOUT_SECONDS: float = 5.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"  # Allow extra env vars to prevent crashes

    @property
    def cors_origins_list(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
