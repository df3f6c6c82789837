"""
Tests for configuration and logging setup.
"""

import logging
import pytest

from pydantic import ValidationError

from ledger.config import (
    AppSettings,
    GoogleSheetsSettings,
    QuerySettings,
    SyncSettings,
    validate_all_settings,
)
from ledger.logs import configure_logging, get_logger


class TestSettings:
    """Tests for environment-driven settings."""

    def test_sheets_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "abc123")
        monkeypatch.setenv("GOOGLE_SHEETS_HEADER_ROW", "10")
        settings = GoogleSheetsSettings()
        assert settings.spreadsheet_id == "abc123"
        assert settings.header_row == 10
        assert settings.budget_cell == "C2"
        assert settings.fixed_budget_cell is None

    def test_sheets_settings_require_spreadsheet(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        with pytest.raises(ValidationError):
            GoogleSheetsSettings()

    def test_sync_defaults(self):
        settings = SyncSettings()
        assert settings.request_delay_seconds == 0.1
        assert settings.retry_attempts == 3

    def test_query_page_size_from_env(self, monkeypatch):
        monkeypatch.setenv("LEDGER_QUERY_PAGE_SIZE", "50")
        assert QuerySettings().page_size == 50

    def test_log_level_normalized(self):
        assert AppSettings(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            AppSettings(log_level="loud")

    def test_validate_all_settings(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        results = validate_all_settings()
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
        assert results["sync"] is True
        assert results["query"] is True


class TestLogging:
    """Tests for structlog configuration."""

    def test_json_events_reach_stdlib_logging(self, caplog):
        configure_logging(level="INFO", json_output=True)
        caplog.set_level(logging.INFO)
        get_logger("ledger.tests").info("partition_refreshed", partition="2024년 3월", rows=5)
        assert "partition_refreshed" in caplog.text
        assert '"rows": 5' in caplog.text

    def test_level_filters_events(self, caplog):
        configure_logging(level="WARNING", json_output=False)
        caplog.set_level(logging.WARNING)
        get_logger("ledger.tests.quiet").info("not_shown")
        assert "not_shown" not in caplog.text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
