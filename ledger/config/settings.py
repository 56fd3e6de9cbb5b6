"""
Configuration for Monthly Ledger

Settings come from environment variables (and an optional .env file),
parsed and validated by pydantic-settings.

DESIGN DECISION: Every external name the ledger depends on (project URL,
key, schema, table names, realtime channel) is configurable here, so a
deployment with renamed tables needs no code change.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Supabase remote store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Supabase project URL (https://<ref>.supabase.co)"
    )
    key: str = Field(
        ...,
        description="Supabase anon/public API key"
    )
    db_schema: str = Field(
        default="public",
        description="Postgres schema holding the ledger tables"
    )

    # Table names within the schema
    reports_table: str = Field(
        default="monthly_reports",
        description="Table with one row per (user_id, year, month)"
    )
    notes_table: str = Field(
        default="global_notes",
        description="Table with one global notes row per user"
    )
    calculator_table: str = Field(
        default="calculator_data",
        description="Table with one calculator row per user"
    )

    channel_name: str = Field(
        default="public:data",
        description="Realtime channel name used for change notifications"
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Supabase URLs are always http(s)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Supabase URL must start with http:// or https://, got {v!r}")
        return v.rstrip("/")


class AppSettings(BaseSettings):
    """
    Process-wide settings that do not belong to a backend.

    Read from the environment (no prefix) and an optional .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Deployment name (development, staging, production)"
    )
    debug_mode: bool = Field(
        default=False,
        description="Verbose diagnostics"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum level for the local structured log"
    )
    log_json: bool = Field(
        default=True,
        description="Render log lines as JSON (False = human-readable console output)"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Entry point to every settings section.

    Sections are built on access, never at construction.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Lazy: a guest session must work without any Supabase variables

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide Settings instance. get_settings.cache_clear() forces a re-read."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to build every settings section.

    Returns:
        {section: loaded_ok}, plus "<section>_error" messages for failures
    """
    settings = get_settings()
    results = {}

    for section in ("supabase", "app"):
        try:
            getattr(settings, section)
        except ValueError as e:
            results[section] = False
            results[f"{section}_error"] = str(e)
        else:
            results[section] = True

    return results


def table_names(settings: Optional[SupabaseSettings] = None) -> dict[str, str]:
    """Map resource kind -> configured table name."""
    if settings is None:
        return {
            "reports": "monthly_reports",
            "notes": "global_notes",
            "calculator": "calculator_data",
        }
    return {
        "reports": settings.reports_table,
        "notes": settings.notes_table,
        "calculator": settings.calculator_table,
    }
