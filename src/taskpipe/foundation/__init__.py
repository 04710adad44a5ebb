"""Foundation layer: configuration and error types."""

from .config import LoggingSettings, PipeSettings, clear_settings_cache, get_settings
from .errors import ErrorCode, PipeError, PipeException

__all__ = [
    "LoggingSettings",
    "PipeSettings",
    "clear_settings_cache",
    "get_settings",
    "ErrorCode",
    "PipeError",
    "PipeException",
]
