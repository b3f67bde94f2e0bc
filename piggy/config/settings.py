"""
Configuration Management for Piggy Budget

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, and only the
orchestrator reads it. Ledger components receive plain values through
their constructors so they can be built in tests without an environment.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote document store configuration."""

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

    # One worksheet per collection; this is the expenses collection
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet holding expense documents"
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        ge=0.5,
        le=300.0,
        description="How often the live subscription re-reads the sheet"
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


class StorageSettings(BaseSettings):
    """Local session storage and collection naming."""

    model_config = SettingsConfigDict(
        env_prefix="PIGGY_",
        extra="ignore"
    )

    session_file: str = Field(
        default="./data/session.json",
        description="JSON file backing the local session store"
    )
    expenses_collection: str = Field(
        default="expenses",
        description="Remote collection holding expense documents"
    )
    local_expenses_key: str = Field(
        default="expenses",
        description="Session key of the locally cached expense list"
    )
    current_user_key: str = Field(
        default="currentUser",
        description="Session key of the logged-in user record"
    )
    users_key: str = Field(
        default="users",
        description="Session key of the registered accounts list"
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
    log_level: str = Field(
        default="INFO",
        description="Root log level for structured logging"
    )

    # Scoping
    anonymous_user_id: str = Field(
        default="anonymous",
        min_length=1,
        description="Owner tag used when no user is logged in"
    )

    # Accounts
    min_password_length: int = Field(
        default=6,
        ge=1,
        le=128,
        description="Minimum password length accepted at sign up"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Log levels are matched case-insensitively."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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
    Google Sheets is optional: without it the ledger runs local-only.
    """
    results = {}

    settings = get_settings()

    for name in ("google_sheets", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
