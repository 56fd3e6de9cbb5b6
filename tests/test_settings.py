"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from ledger.config import AppSettings, SupabaseSettings, table_names


class TestSupabaseSettings:
    """Tests for Supabase configuration."""

    def test_loads_from_environment(self, monkeypatch):
        """Test SUPABASE_ prefixed variables."""
        monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co/")
        monkeypatch.setenv("SUPABASE_KEY", "anon-key")
        monkeypatch.setenv("SUPABASE_REPORTS_TABLE", "reports_v2")

        settings = SupabaseSettings()

        assert settings.url == "https://abc.supabase.co"
        assert settings.reports_table == "reports_v2"
        assert settings.db_schema == "public"
        assert table_names(settings)["reports"] == "reports_v2"

    def test_rejects_non_http_url(self):
        """Test URL validation."""
        with pytest.raises(ValidationError):
            SupabaseSettings(url="abc.supabase.co", key="k")

    def test_default_table_names(self):
        """Test table names without configuration."""
        assert table_names() == {
            "reports": "monthly_reports",
            "notes": "global_notes",
            "calculator": "calculator_data",
        }


class TestAppSettings:
    """Tests for application settings."""

    def test_log_level_normalized(self):
        """Test that log levels are upper-cased."""
        assert AppSettings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        """Test log level validation."""
        with pytest.raises(ValidationError):
            AppSettings(log_level="chatty")
