"""taskpipe - ordered, concurrency-bounded rendezvous of producers and consumers.

Producers fill the pipe with tasks; consumers fetch results. The Nth task's
result goes to the Nth fetch, and at most ``concurrency`` pairs run at once.
A pair's slot is released by the consumer, not the producer, so a slow
consumer throttles the producers feeding it.

Quick Start:
    >>> from taskpipe import Pipe
    >>>
    >>> def add(a, b, done):
    ...     done(None, a + b)
    >>>
    >>> def show(error, total, done):
    ...     print(total)
    ...     done()
    >>>
    >>> pipe = Pipe(1).fill(add, 10, 15).fill(add, 40, -20)
    >>> pipe.fetch(show).fetch(show)  # prints 25, then 20

Asyncio:
    >>> from taskpipe import Pipe, fill_async, fetch_result
    >>>
    >>> pipe = Pipe(8)
    >>> fill_async(pipe, download, url)
    >>> async with fetch_result(pipe) as body:
    ...     await save(body)

Configuration (environment):
    TASKPIPE_DEFAULT_CONCURRENCY, TASKPIPE_CATCH_ERRORS,
    TASKPIPE_LOG_LEVEL, TASKPIPE_LOG_FORMAT
"""

from .foundation import (
    ErrorCode,
    LoggingSettings,
    PipeError,
    PipeException,
    PipeSettings,
    clear_settings_cache,
    get_settings,
)
from .runtime import (
    UNBOUNDED,
    Continuation,
    Pipe,
    Task,
    Waiter,
    configure_from_settings,
    configure_logging,
    fetch_result,
    fill_async,
    from_blocking,
    from_coroutine,
    get_logger,
    shutdown_default_executor,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "Pipe",
    "UNBOUNDED",
    "Task",
    "Waiter",
    "Continuation",
    # Interop
    "from_coroutine",
    "from_blocking",
    "fill_async",
    "fetch_result",
    "shutdown_default_executor",
    # Errors
    "ErrorCode",
    "PipeError",
    "PipeException",
    # Config
    "PipeSettings",
    "LoggingSettings",
    "get_settings",
    "clear_settings_cache",
    # Logging
    "configure_logging",
    "configure_from_settings",
    "get_logger",
]
