from pydantic_settings import BaseSettings
from pydantic import field_validator
from decimal import Decimal
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./carhub.db"

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # JWT Settings - tokens are issued by the external identity service,
    # this app only verifies them.
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # App Settings
    APP_NAME: str = "CarHub Rentals"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Simulated payment gateway
    CURRENCY: str = "USD"

    # Partner program
    DEFAULT_COMMISSION_RATE: Decimal = Decimal("10")  # % retained by the platform
    PARTNER_REGISTRATION_FEE: Decimal = Decimal("10.00")
    AUTO_SYNC_PARTNER_PRIVILEGES: bool = False  # approve/reject also flips users.is_partner

    # Redemptions
    MIN_REDEMPTION_AMOUNT: Decimal = Decimal("1.00")
    MAX_REDEMPTION_AMOUNT: Decimal = Decimal("100000.00")
    SINGLE_OPEN_REDEMPTION: bool = True  # one pending/processing request per partner

    # Booking policy
    PREVENT_OVERLAPPING_BOOKINGS: bool = True
    SYNC_CAR_AVAILABILITY: bool = True
    STRICT_BOOKING_TRANSITIONS: bool = False  # admin status override follows the adjacency table

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
