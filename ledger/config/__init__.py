"""Configuration package."""

from ledger.config.settings import (
    AppSettings,
    Settings,
    SupabaseSettings,
    get_settings,
    table_names,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "Settings",
    "SupabaseSettings",
    "get_settings",
    "table_names",
    "validate_all_settings",
]
