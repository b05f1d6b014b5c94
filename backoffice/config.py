from pydantic_settings import BaseSettings
from pydantic import field_validator
from decimal import Decimal
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./backoffice.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "Back Office Workflow Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - JSON list or comma-separated
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Money
    CURRENCY_MINOR_UNIT: Decimal = Decimal("0.01")
    PAYMENT_TOLERANCE: Decimal = Decimal("0.01")  # paid when balance <= tolerance

    # Workflow policies
    REQUIRE_RECIPE_ON_CREATE: bool = True  # reject production orders for products without a recipe
    ALLOW_CANCEL_PAID_INVOICES: bool = True  # cancel invoices even when payments exist

    # Payment terms
    DEFAULT_VENDOR_PAYMENT_DAYS: int = 30
    INVOICE_DUE_DAYS: int = 30
    DUE_SOON_DAYS: int = 7

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    OVERDUE_SWEEP_INTERVAL_MINUTES: int = 60
    SCHEDULER_TIMEZONE: str = "Asia/Kolkata"

    @field_validator('LOG_LEVEL')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def cors_origins_list(self) -> list[str]:
        value = self.CORS_ORIGINS.strip()
        if value.startswith("["):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass
        return [origin.strip() for origin in value.split(',') if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
