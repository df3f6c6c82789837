"""
Configuration Management for Household Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Settings are loaded once at process start and treated as immutable
afterwards; every component receives the values it needs from here.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets ledger document configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    spreadsheet_id: str = Field(
        ...,
        description="ID of the ledger spreadsheet"
    )
    client_id: Optional[str] = Field(
        default=None,
        description="OAuth client ID used by the sign-in flow"
    )

    # Layout of each monthly worksheet
    header_row: int = Field(
        default=28,
        ge=1,
        description="1-based row holding the ledger table headers"
    )
    first_column: str = Field(
        default="A",
        description="First column of the ledger table"
    )
    last_column: str = Field(
        default="F",
        description="Last column read when fetching ledger rows"
    )
    append_last_column: str = Field(
        default="G",
        description="Last column written when appending a ledger entry"
    )
    budget_cell: str = Field(
        default="C2",
        description="Cell holding the living-expense budget for the month"
    )
    fixed_budget_cell: Optional[str] = Field(
        default=None,
        description="Cell holding the planned fixed expenses (optional)"
    )

    @field_validator("first_column", "last_column", "append_last_column")
    @classmethod
    def validate_column_letters(cls, v: str) -> str:
        """Column references must be plain A1 column letters."""
        v = v.strip().upper()
        if not v.isalpha():
            raise ValueError(f"Invalid column letter: {v!r}")
        return v


class SyncSettings(BaseSettings):
    """Partition synchronization tuning."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # The Sheets API has a per-user read quota; bulk loads stay under it
    request_delay_seconds: float = Field(
        default=0.1,
        ge=0.0,
        le=10.0,
        description="Delay between sequential partition fetches"
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient remote failures"
    )


class QuerySettings(BaseSettings):
    """Tabular browsing defaults."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_QUERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    page_size: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Rows revealed per page of the ledger table"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console rendering otherwise)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v


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

    # Sub-settings are built lazily so that a missing spreadsheet ID
    # only fails the components that actually talk to Sheets

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def query(self) -> QuerySettings:
        return QuerySettings()

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

    for name in ("google_sheets", "sync", "query", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
