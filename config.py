"""
Configuration management for CareSync
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "CareSync"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENV: str = "development"

    # API
    API_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./caresync.db"
    DATABASE_ECHO: bool = False
    SQLITE_BUSY_TIMEOUT: int = 30  # seconds a writer waits for the lock

    # Scheduling and statistics
    REFERENCE_TIMEZONE: str = "UTC"
    DAY_START_HOUR: int = 8
    DOSE_WINDOW_MINUTES: int = 30
    REFILL_SUPPLY_DAYS: int = 7
    DEFAULT_STATS_DAYS: int = 30

    # External prescription PDF parser
    PDF_PARSER_URL: Optional[str] = None
    PDF_PARSER_TIMEOUT: float = 30.0

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


class EngineConfig:
    """Fixed rules of the adherence engine"""

    # Roles that may read any patient's data
    PRIVILEGED_ROLES: frozenset = frozenset({"admin", "healthcareprovider"})

    # Default capabilities granted on a new caregiver invite
    DEFAULT_PERMISSIONS: dict = {"viewMedications": True}

    # Prescription import defaults
    IMPORT_DEFAULT_QUANTITY: int = 30
    IMPORT_DEFAULT_UNIT: str = "mg"

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100


# Database table names
class TableNames:
    USERS = "users"
    MEDICATIONS = "medications"
    CAREGIVER_PATIENTS = "caregiver_patients"
    ADHERENCE_RECORDS = "adherence_records"
    ADHERENCE_CORRECTIONS = "adherence_corrections"


settings = get_settings()
engine_config = EngineConfig()
