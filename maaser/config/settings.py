"""
Configuration Management for Maaser Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Worksheet names within the spreadsheet
    incomes_sheet_name: str = Field(default="Incomes")
    donations_sheet_name: str = Field(default="Donations")
    settings_sheet_name: str = Field(default="Settings")
    notifications_sheet_name: str = Field(default="Notifications")
    audit_sheet_name: str = Field(default="AuditLog")
    schema_sheet_name: str = Field(
        default="_schema",
        description="Worksheet recording applied schema migrations"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class TrackerSettings(BaseSettings):
    """Financial engine defaults."""

    model_config = SettingsConfigDict(
        env_prefix="MAASER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage implementation to wire up"
    )

    # Fixed rate, never a live lookup
    usd_to_ils_rate: Decimal = Field(
        default=Decimal("3.5"),
        gt=0,
        description="ILS per 1 USD"
    )

    default_currency: str = Field(
        default="ILS",
        pattern="^(ILS|USD)$",
        description="Base currency for users without settings"
    )
    default_tithe_percent: Decimal = Field(
        default=Decimal("10"),
        gt=0,
        le=100,
        description="Whole percentage for users without settings"
    )

    # Validation thresholds
    max_reasonable_amount_ils: Decimal = Field(
        default=Decimal("1000000"),
        description="Amounts above this (in ILS) get a plausibility warning"
    )
    future_date_tolerance_days: int = Field(
        default=366,
        ge=0,
        description="How far in the future a record date can be without a warning"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a memory-only setup does not
    # need Google credentials.

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def tracker(self) -> TrackerSettings:
        return TrackerSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Google Sheets is only checked when it is the selected backend.
    """
    results = {}

    settings = get_settings()

    try:
        tracker = settings.tracker
        results["tracker"] = True
    except Exception as e:
        tracker = None
        results["tracker"] = False
        results["tracker_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    if tracker is not None and tracker.storage_backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
