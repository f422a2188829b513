"""Application configuration via Pydantic Settings."""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_CALLER: bool = False

    # Database ("memory://" selects the in-process store)
    DATABASE_URL: str = "sqlite+aiosqlite:///./pricewatch.db"

    @model_validator(mode="after")
    def fix_database_url(self) -> "Settings":
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://"""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            self.DATABASE_URL = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            self.DATABASE_URL = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self

    # Scraper
    SCRAPER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )
    SCRAPER_REQUEST_TIMEOUT: float = 30.0  # seconds
    SCRAPER_REQUEST_DELAY: float = 2.0  # seconds between requests to the same host
    SCRAPER_WORKERS: int = 5
    SCRAPER_MAX_RETRIES: int = 0  # in-cycle retries of transient fetch errors

    # ScraperAPI proxy (empty disables)
    SCRAPERAPI_KEY: str = ""
    SCRAPERAPI_RENDER: bool = True

    DEFAULT_CURRENCY: str = "BRL"

    # Monitoring cycle
    MONITOR_INTERVAL_MINUTES: int = 60
    MONITOR_CYCLE_TIMEOUT_SECONDS: float = 600.0
    MONITOR_RUN_ON_START: bool = True

    # 0 keeps history delta-only
    HISTORY_SNAPSHOT_INTERVAL_HOURS: float = 0.0

    # Email channel
    EMAIL_ENABLED: bool = False
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = ""
    EMAIL_DEFAULT_RECIPIENT: str = ""

    # Telegram channel
    TELEGRAM_ENABLED: bool = False
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: str = ""
    TELEGRAM_API_URL: str = "https://api.telegram.org"

    @field_validator("SCRAPER_WORKERS")
    @classmethod
    def _workers_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("SCRAPER_WORKERS must be at least 1")
        return value

    @field_validator("SCRAPER_REQUEST_TIMEOUT", "MONITOR_CYCLE_TIMEOUT_SECONDS")
    @classmethod
    def _timeout_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    @field_validator("SCRAPER_REQUEST_DELAY", "HISTORY_SNAPSHOT_INTERVAL_HOURS")
    @classmethod
    def _not_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("value must not be negative")
        return value

    @field_validator("SCRAPER_MAX_RETRIES")
    @classmethod
    def _retries_not_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("SCRAPER_MAX_RETRIES must not be negative")
        return value

    @field_validator("DEFAULT_CURRENCY")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.strip().upper()


settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns:
        Settings instance
    """
    return settings
