"""
Configuration Management for Cashbook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All server-side configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.

Client-side settings (the user's own API key and model choice) are NOT
here; they live in ``cashbook.client.settings_store``.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational datastore configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./cashbook.db",
        description="Async SQLAlchemy database URL"
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Only async drivers work with the storage layer."""
        if v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v


class GeminiSettings(BaseSettings):
    """
    Vision model configuration.

    The API key is optional here because callers may bring their own key
    with each recognition request.
    """

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Server-side default Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Default vision model"
    )
    max_tokens: int = Field(
        default=4096,
        ge=256,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class SessionSettings(BaseSettings):
    """Login session and cookie configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    cookie_name: str = Field(
        default="session_token",
        description="Name of the session cookie"
    )
    lifetime_days: int = Field(
        default=7,
        ge=1,
        le=365,
        description="Session lifetime (also the cookie max-age)"
    )

    @property
    def max_age_seconds(self) -> int:
        return self.lifetime_days * 24 * 60 * 60


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

    # Statement upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum statement image size in MB"
    )
    supported_image_formats: str = Field(
        default="jpeg,png,webp",
        description="Comma-separated list of supported image formats"
    )

    # Charts
    small_category_threshold_percent: float = Field(
        default=3.0,
        ge=0.0,
        le=100.0,
        description="Categories at or below this share are merged into 'other'"
    )

    # Client
    api_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL the client application talks to"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


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

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def session(self) -> SessionSettings:
        return SessionSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus ``<name>_error``
    entries describing failures. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("database", "gemini", "session", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    # A missing server key is allowed, but recognition then needs a client key
    results["gemini_default_key"] = bool(settings.gemini.api_key)

    return results
