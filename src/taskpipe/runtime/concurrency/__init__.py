"""Rendezvous primitives for bounded producer/consumer pipelines.

Key Components:
    - Pipe: Ordered task/waiter matching with a concurrency limit and
      two-phase completion (producer_done, then consumer_done)
    - Task / Waiter: Records held in the pipe's queues
    - Interop: Adapters for coroutines and blocking functions, and an
      async context manager for consuming results

Example:
    >>> from taskpipe.runtime.concurrency import Pipe
    >>>
    >>> pipe = Pipe(2)
    >>> pipe.fill(fetch_page, "a").fill(fetch_page, "b").fill(fetch_page, "c")
    >>> pipe.flush(write_page)  # two pages in flight, third after a write finishes
"""

from __future__ import annotations

from .interop import fetch_result, fill_async, from_blocking, from_coroutine, shutdown_default_executor
from .pipe import UNBOUNDED, Pipe
from .records import Continuation, Task, Waiter

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
]
