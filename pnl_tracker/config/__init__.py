"""Configuration package."""

from pnl_tracker.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    Settings,
    TaxSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "Settings",
    "TaxSettings",
    "get_settings",
    "validate_all_settings",
]
