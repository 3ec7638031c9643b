"""
Configuration Management for Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external collaborators exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Expense HTTP API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_API_",
        extra="ignore"
    )

    base_url: str = Field(
        default="http://localhost:3000",
        description="Origin of the expense API (paths start with /api)"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Timeout applied to every HTTP call"
    )
    session_cookie_name: str = Field(
        default="session",
        description="Name of the cookie that associates calls with a session"
    )
    session_cookie: Optional[str] = Field(
        default=None,
        description="Session cookie value sent with every API call"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Paths are appended as /api/..., so drop any trailing slash."""
        return v.rstrip("/")


class CacheSettings(BaseSettings):
    """Expense cache and list query configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_CACHE_",
        extra="ignore"
    )

    stale_time_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="How long a fetched list is served without refetching"
    )
    # Reads only. Writes are never retried.
    list_retry_attempts: int = Field(
        default=2,
        ge=1,
        le=2,
        description="Total attempts for the list read (at most one retry)"
    )
    list_retry_wait_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=10.0,
        description="Wait before retrying a failed list read"
    )


class UploadSettings(BaseSettings):
    """Receipt upload configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_UPLOAD_",
        extra="ignore"
    )

    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum receipt file size in MB"
    )

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


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

    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )


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
    def api(self) -> ApiSettings:
        return ApiSettings()

    @property
    def cache(self) -> CacheSettings:
        return CacheSettings()

    @property
    def upload(self) -> UploadSettings:
        return UploadSettings()

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

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every section that failed to load.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("api", "cache", "upload", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
