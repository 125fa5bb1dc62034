"""
Settings for FinFlow

Every knob comes from the environment (or `.env`) through
pydantic-settings, one class per collaborator.

DESIGN DECISION: Sub-settings are built on first access, not at import.
A deployment without a Gemini key or Sheets credentials still starts;
only the feature that needs them reports itself unavailable.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StateStoreSettings(BaseSettings):
    """Remote state document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STATE_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: Literal["rest", "sheets", "memory"] = Field(
        default="memory",
        description="Which storage backend holds the per-user state document"
    )
    base_url: str = Field(
        default="http://localhost:3000/api",
        description="Root of the REST API exposing /user-state/{id}"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single HTTP request"
    )
    debounce_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Delay after the last mutation before the state is persisted"
    )
    load_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Safety timeout for the initial state load"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class GoogleSheetsSettings(BaseSettings):
    """Sheets backend for the state document (one row per user)."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account JSON used by gspread"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Key of the spreadsheet holding the state sheet"
    )
    state_sheet_name: str = Field(
        default="UserState",
        description="Name of the sheet holding one state document per user"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Only warn: the file may be mounted after the settings are read."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account file {v} does not exist yet; "
                "the Sheets backend will fail to connect without it."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini access for the chat assistant and receipt scanning."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Google AI Studio key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Model used for both chat and vision"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Upper bound on reply length"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for chat replies"
    )


class TelegramSettings(BaseSettings):
    """Telegram Mini App host configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    bot_token: str = Field(
        ...,
        description="Bot token used to verify WebApp initData signatures"
    )
    init_data_max_age_seconds: int = Field(
        default=86400,
        ge=0,
        description="Reject initData older than this (0 disables the check)"
    )


class AppSettings(BaseSettings):
    """
    Process-wide settings without a prefix.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="development, staging or production"
    )
    debug_mode: bool = Field(
        default=False,
        description="Verbose logging"
    )

    # Defaults for a brand new state document
    default_profile_name: str = Field(
        default="Гость",
        description="Profile name used before the user sets one"
    )
    default_currency: str = Field(
        default="₽",
        description="Currency symbol for new profiles"
    )


class Settings(BaseSettings):
    """
    Entry point to every sub-settings class.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Each property reads the environment on access

    @property
    def state_store(self) -> StateStoreSettings:
        return StateStoreSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def telegram(self) -> TelegramSettings:
        return TelegramSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide Settings instance.

    Tests that change the environment call get_settings.cache_clear().
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Report which sub-settings load.

    Returns:
        {name: ok} plus {name}_error with the message for failures;
        shown on the settings page.
    """
    results = {}

    settings = get_settings()

    for name in ("state_store", "google_sheets", "gemini", "telegram", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
