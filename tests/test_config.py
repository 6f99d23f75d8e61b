"""Tests for environment-driven configuration."""

from decimal import Decimal

import pytest

from maaser.config import TrackerSettings, get_settings, validate_all_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestTrackerSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MAASER_STORAGE_BACKEND", raising=False)
        settings = TrackerSettings()
        assert settings.storage_backend == "memory"
        assert settings.usd_to_ils_rate == Decimal("3.5")
        assert settings.default_currency == "ILS"
        assert settings.default_tithe_percent == Decimal("10")

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("MAASER_USD_TO_ILS_RATE", "3.7")
        monkeypatch.setenv("MAASER_DEFAULT_CURRENCY", "USD")
        settings = TrackerSettings()
        assert settings.usd_to_ils_rate == Decimal("3.7")
        assert settings.default_currency == "USD"

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("MAASER_STORAGE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            TrackerSettings()


class TestValidateAllSettings:

    def test_memory_backend_skips_google_sheets(self, monkeypatch):
        monkeypatch.setenv("MAASER_STORAGE_BACKEND", "memory")
        results = validate_all_settings()
        assert results["tracker"] is True
        assert "google_sheets" not in results

    def test_google_sheets_backend_requires_credentials(self, monkeypatch):
        monkeypatch.setenv("MAASER_STORAGE_BACKEND", "google_sheets")
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        results = validate_all_settings()
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
