# helix/core/config.py
"""
Application configuration using Pydantic Settings
"""
from datetime import date
from typing import List
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "Helix"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_AUTO_CREATE: bool = True

    # CORS
    CORS_ORIGINS: str = '["http://localhost:5173", "http://localhost:3000"]'
    CORS_ORIGIN_REGEX: str | None = None

    # Sync / reconciliation
    SYNC_BATCH_SIZE: int = 50
    SYNC_DEADLINE_SECONDS: float = 0.0  # 0 disables the run deadline
    SYNC_LOCK_TIMEOUT_SECONDS: float = 30.0
    SYNC_SCHEDULE_ENABLED: bool = False
    SYNC_INTERVAL_MINUTES: int = 60
    RECONCILE_HISTORY_START: date = date(2015, 1, 1)
    RECONCILE_HISTORY_DAYS: int = 3650

    # Idempotency
    IDEMPOTENCY_TTL_HOURS: int = 24

    # Fetch client (dashboard-side API consumer)
    API_BASE_URL: str = "http://localhost:8000"
    FETCH_TIMEOUT_SECONDS: float = 30.0
    FETCH_MAX_RETRIES: int = 3
    FETCH_BACKOFF_BASE_SECONDS: float = 1.0
    FETCH_BACKOFF_CAP_SECONDS: float = 5.0
    FETCH_CACHE_TTL_SECONDS: float = 300.0
    FETCH_CACHE_MAX_ENTRIES: int = 512

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def strip_database_url(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("DATABASE_URL must not be empty")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().upper() or "INFO"
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from a JSON list or a comma-separated string"""
        raw = (self.CORS_ORIGINS or "").strip()
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return [part.strip() for part in raw.split(",") if part.strip()]
        if isinstance(parsed, str):
            return [parsed]
        return [str(item) for item in parsed]


# Create settings instance
settings = Settings()
