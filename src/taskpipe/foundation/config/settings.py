"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated defaults for new pipes and for logging,
read from environment variables or a .env file.

Example:
    >>> from taskpipe.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.default_concurrency
    1
    >>> settings.logging.level
    'INFO'

    # Or with environment variables:
    # TASKPIPE_DEFAULT_CONCURRENCY=4
    # TASKPIPE_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TASKPIPE_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"
    colors: bool | None = Field(default=None, description="Force console colors (None = auto-detect)")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class PipeSettings(BaseSettings):
    """Root settings for taskpipe.

    Example environment variables:
        TASKPIPE_DEFAULT_CONCURRENCY=8
        TASKPIPE_CATCH_ERRORS=false
        TASKPIPE_LOG_LEVEL=DEBUG
        TASKPIPE_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKPIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    default_concurrency: PositiveInt = Field(
        default=1,
        description="Concurrency used when a Pipe is built without an explicit limit",
    )
    catch_errors: bool = Field(
        default=True,
        description="Deliver exceptions raised by task functions to the waiter instead of propagating",
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> PipeSettings:
    """Get the global settings instance (cached)."""
    return PipeSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()
