"""Tests for configuration loading and validation."""

import pytest
from pydantic import ValidationError

from pricewatch.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.SCRAPER_WORKERS == 5
        assert settings.MONITOR_INTERVAL_MINUTES == 60
        assert settings.DEFAULT_CURRENCY == "BRL"
        assert settings.HISTORY_SNAPSHOT_INTERVAL_HOURS == 0
        assert settings.EMAIL_ENABLED is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SCRAPER_WORKERS", "12")
        monkeypatch.setenv("DEFAULT_CURRENCY", " usd ")
        monkeypatch.setenv("TELEGRAM_ENABLED", "true")

        settings = Settings(_env_file=None)

        assert settings.SCRAPER_WORKERS == 12
        assert settings.DEFAULT_CURRENCY == "USD"
        assert settings.TELEGRAM_ENABLED is True

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("postgresql://u:p@db/pw", "postgresql+asyncpg://u:p@db/pw"),
            ("postgres://u:p@db/pw", "postgresql+asyncpg://u:p@db/pw"),
            ("sqlite+aiosqlite:///./x.db", "sqlite+aiosqlite:///./x.db"),
        ],
    )
    def test_database_url_fixup(self, url, expected):
        assert Settings(_env_file=None, DATABASE_URL=url).DATABASE_URL == expected

    @pytest.mark.parametrize(
        "field, value",
        [
            ("SCRAPER_WORKERS", 0),
            ("SCRAPER_REQUEST_TIMEOUT", 0),
            ("MONITOR_CYCLE_TIMEOUT_SECONDS", -1),
            ("SCRAPER_REQUEST_DELAY", -0.5),
            ("SCRAPER_MAX_RETRIES", -1),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})
