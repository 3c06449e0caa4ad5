"""
Configuration Management for P&L Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The pure core never reads settings itself; the flows in the orchestrator
read them once and pass the values in as explicit parameters.
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

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    categories_sheet_name: str = Field(
        default="Categories",
        description="Name of the sheet for categories"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
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


class TaxSettings(BaseSettings):
    """Tax estimator configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TAX_",
        extra="ignore"
    )

    tax_year: int = Field(
        default=2025,
        ge=2000,
        le=2100,
        description="Tax year whose bracket table is used by default"
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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Recurring series
    recurring_horizon_years: int = Field(
        default=10,
        ge=1,
        le=50,
        description="How far into the future a series end date may be"
    )
    default_interval_days: int = Field(
        default=30,
        ge=1,
        description="Interval used to extend a series with fewer than two instances"
    )
    min_interval_days: int = Field(
        default=7,
        ge=1,
        description="Lower clamp for an inferred series interval"
    )

    # Import / query limits
    max_import_rows: int = Field(
        default=10000,
        ge=1,
        description="Maximum transactions accepted by a single import"
    )
    page_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Rows fetched per storage page when loading the full ledger"
    )

    # Input sanitisation
    max_name_length: int = Field(
        default=200,
        description="Transaction names are truncated to this length"
    )
    max_notes_length: int = Field(
        default=500,
        description="Transaction notes are truncated to this length"
    )
    max_amount: Decimal = Field(
        default=Decimal("999999999.99"),
        description="Largest amount accepted for a single transaction"
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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def tax(self) -> TaxSettings:
        return TaxSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("google_sheets", "tax", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
