"""Configuration management using pydantic-settings."""

from .settings import LoggingSettings, PipeSettings, clear_settings_cache, get_settings

__all__ = [
    "LoggingSettings",
    "PipeSettings",
    "clear_settings_cache",
    "get_settings",
]
