"""
Configuration Management for Event Planner

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every external collaborator (Supabase, Google Sheets) is optional:
a missing configuration selects the disabled implementation instead of
failing at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PLACEHOLDER_VALUES = {"", "YOUR_SUPABASE_URL", "YOUR_SUPABASE_ANON_KEY"}


class SupabaseSettings(BaseSettings):
    """Remote backend configuration (optional)."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(
        default="",
        description="Supabase project URL"
    )
    anon_key: str = Field(
        default="",
        description="Supabase anonymous (public) API key"
    )
    email: str = Field(
        default="",
        description="Account email used for password sign-in"
    )
    password: str = Field(
        default="",
        description="Account password used for password sign-in"
    )
    realtime_enabled: bool = Field(
        default=True,
        description="Subscribe to realtime event changes"
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per remote call before giving up"
    )
    retry_max_wait_seconds: float = Field(
        default=8.0,
        ge=0.0,
        le=60.0,
        description="Upper bound for the exponential backoff between attempts"
    )

    @property
    def is_configured(self) -> bool:
        """URL and key are set and are not the template placeholders."""
        return (
            self.url.strip() not in _PLACEHOLDER_VALUES
            and self.anon_key.strip() not in _PLACEHOLDER_VALUES
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.email and self.password)


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets budget export configuration (optional)."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    credentials_path: str = Field(
        default="",
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        default="",
        description="ID of the spreadsheet the budget is exported to"
    )

    @field_validator("credentials_path")
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if v and not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before exporting the budget."
            )
        return v

    @property
    def is_configured(self) -> bool:
        return bool(self.credentials_path and self.spreadsheet_id)


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
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

    # Local persistence
    data_dir: str = Field(
        default=str(Path.home() / ".local" / "share" / "eventplanner"),
        description="Directory holding the persisted planner collections"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level for the structured logger"
    )
    log_json: bool = Field(
        default=True,
        description="Render log lines as JSON (console renderer otherwise)"
    )

    # Read-side views
    upcoming_task_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="How many upcoming tasks the dashboard shows"
    )
    recent_task_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="How many recent tasks the dashboard shows"
    )
    task_page_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Page size of the task list"
    )

    # Duplicate detection
    duplicate_keyword_ratio: float = Field(
        default=0.7,
        gt=0.0,
        le=1.0,
        description="Share of significant words two titles must have in common"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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


def validate_all_settings() -> dict[str, bool | str]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus {setting_name}_error
    entries describing what is missing. Useful for startup checks.
    """
    results: dict[str, bool | str] = {}

    settings = get_settings()

    try:
        supabase = settings.supabase
        results["supabase"] = supabase.is_configured
        if not supabase.is_configured:
            results["supabase_error"] = "SUPABASE_URL / SUPABASE_ANON_KEY not set"
    except Exception as e:
        results["supabase"] = False
        results["supabase_error"] = str(e)

    try:
        sheets = settings.google_sheets
        results["google_sheets"] = sheets.is_configured
        if not sheets.is_configured:
            results["google_sheets_error"] = (
                "GOOGLE_SHEETS_CREDENTIALS_PATH / GOOGLE_SHEETS_SPREADSHEET_ID not set"
            )
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
