"""
Configuration
=============

Environment-driven settings for the booking engine and the channel manager.
Values are read from the process environment and an optional ``.env`` file.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class LockBackend(str, Enum):
    REDIS = "redis"
    LOCAL = "local"


class ExpiredHoldPolicy(str, Enum):
    """What the reaper does with a pending booking whose hold it removed."""
    IGNORE = "ignore"
    CANCEL_PENDING = "cancel_pending"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Storage
    DATABASE_URL: str = "sqlite+aiosqlite:///./pms.db"
    DATABASE_ECHO: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"

    # Per-property booking lock
    LOCK_BACKEND: LockBackend = LockBackend.REDIS
    LOCK_TIMEOUT_SECONDS: int = 60
    LOCK_BLOCKING_TIMEOUT_SECONDS: float = 5.0

    # Booking rules
    HOLD_TTL_MINUTES: int = 15
    PARTIAL_PAYMENT_RATIO: Decimal = Decimal("0.5")
    LOYALTY_POINTS_DIVISOR: int = 100

    # Expiry reaper
    REAPER_INTERVAL_SECONDS: int = 300
    EXPIRED_HOLD_POLICY: ExpiredHoldPolicy = ExpiredHoldPolicy.IGNORE

    # Outbound platform calls
    PLATFORM_CALL_TIMEOUT_SECONDS: float = 10.0
    PLATFORM_MAX_ATTEMPTS: int = 3

    AIRBNB_API_URL: str = "https://api.airbnb.com/v2"
    AIRBNB_ACCESS_TOKEN: str = ""
    AIRBNB_WEBHOOK_SECRET: Optional[str] = None

    AGODA_API_URL: str = "https://supply.agoda.com/api/v1"
    AGODA_ACCESS_TOKEN: str = ""
    AGODA_WEBHOOK_SECRET: Optional[str] = None

    BOOKING_COM_API_URL: str = "https://supply-xml.booking.com/json"
    BOOKING_COM_ACCESS_TOKEN: str = ""
    BOOKING_COM_WEBHOOK_SECRET: Optional[str] = None

    # Loyalty ledger (external)
    LOYALTY_SERVICE_URL: Optional[str] = None


settings = Settings()
