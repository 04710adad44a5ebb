"""Runtime layer: the pipe, its adapters, and observability."""

from .concurrency import (
    UNBOUNDED,
    Continuation,
    Pipe,
    Task,
    Waiter,
    fetch_result,
    fill_async,
    from_blocking,
    from_coroutine,
    shutdown_default_executor,
)
from .observability import configure_from_settings, configure_logging, get_logger

__all__ = [
    "Pipe",
    "UNBOUNDED",
    "Task",
    "Waiter",
    "Continuation",
    "from_coroutine",
    "from_blocking",
    "fill_async",
    "fetch_result",
    "shutdown_default_executor",
    "configure_from_settings",
    "configure_logging",
    "get_logger",
]
