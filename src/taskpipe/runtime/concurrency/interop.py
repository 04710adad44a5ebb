"""Adapters between the pipe's continuation protocol and asyncio / threads.

The pipe itself only calls functions and continuations; it never starts
coroutines or threads. These helpers do:
    - from_coroutine: Wrap an async function as a task function
    - from_blocking: Wrap a blocking function, run in a thread pool
    - fill_async: Fill a pipe with an async function
    - fetch_result: Await one result, holding the slot for the block

Example:
    >>> async def download(url):
    ...     ...
    >>> pipe = Pipe(4)
    >>> for url in urls:
    ...     fill_async(pipe, download, url)
    >>> for _ in urls:
    ...     async with fetch_result(pipe) as body:
    ...         await store(body)  # slot is released when the block exits
"""

from __future__ import annotations

import asyncio
import functools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Callable, Coroutine

from taskpipe.foundation.errors import ErrorCode, PipeException

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .pipe import Pipe
    from .records import Continuation

__all__ = ["from_coroutine", "from_blocking", "fill_async", "fetch_result", "shutdown_default_executor"]

# Default thread pool for from_blocking
_default_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()

# Strong references to scheduled coroutine tasks until they finish
_background: set[asyncio.Task[object]] = set()


def _get_default_executor() -> ThreadPoolExecutor:
    """Get or create default thread pool executor."""
    global _default_executor
    if _default_executor is None:
        with _executor_lock:
            if _default_executor is None:
                _default_executor = ThreadPoolExecutor(thread_name_prefix="taskpipe-")
    return _default_executor


def shutdown_default_executor(wait: bool = True) -> None:
    """Shut down the shared thread pool used by from_blocking."""
    global _default_executor
    with _executor_lock:
        if _default_executor is not None:
            _default_executor.shutdown(wait=wait)
            _default_executor = None


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _settle(future: asyncio.Future[object] | Future[object], done: Continuation) -> None:
    """Translate a finished future into producer_done(error, value)."""
    if future.cancelled():
        done(asyncio.CancelledError())
    elif (exc := future.exception()) is not None:
        done(exc)
    else:
        done(None, future.result())


# ─────────────────────────────────────────────────────────────────────────────
# Producer side
# ─────────────────────────────────────────────────────────────────────────────


def from_coroutine(
    func: Callable[..., Coroutine[object, object, object]],
    *,
    loop: asyncio.AbstractEventLoop | None = None,
) -> Callable[..., None]:
    """Adapt an async function into a task function.

    The coroutine runs on ``loop``, or on the loop running when the adapter
    was created, or on the loop running when the task is invoked. Invocation
    from another thread is scheduled thread-safely. On completion the task
    calls ``producer_done(None, result)`` or ``producer_done(exc)``.

    Raises:
        RuntimeError: At invocation, if no event loop can be found
    """
    bound_loop = loop or _running_loop()

    @functools.wraps(func)
    def task_fn(*args: object) -> None:
        *call_args, done = args
        target = bound_loop or asyncio.get_running_loop()
        coro = func(*call_args)
        if _running_loop() is target:
            task = target.create_task(coro)
            _background.add(task)
            task.add_done_callback(_background.discard)
            task.add_done_callback(lambda t: _settle(t, done))
        else:
            asyncio.run_coroutine_threadsafe(coro, target).add_done_callback(lambda f: _settle(f, done))

    return task_fn


def from_blocking(func: Callable[..., object], *, executor: ThreadPoolExecutor | None = None) -> Callable[..., None]:
    """Adapt a blocking function into a task function run in a thread pool.

    Note: producer_done (and with it the waiter's callback) runs on the
    worker thread.
    """
    @functools.wraps(func)
    def task_fn(*args: object) -> None:
        *call_args, done = args
        pool = executor or _get_default_executor()
        pool.submit(func, *call_args).add_done_callback(lambda f: _settle(f, done))

    return task_fn


def fill_async(
    pipe: Pipe,
    func: Callable[..., Coroutine[object, object, object]],
    *args: object,
    context: object | None = None,
) -> Pipe:
    """Fill ``pipe`` with an async function and its arguments."""
    return pipe.fill(from_coroutine(func), *args, context=context)


# ─────────────────────────────────────────────────────────────────────────────
# Consumer side
# ─────────────────────────────────────────────────────────────────────────────


def _unpack(results: tuple[object, ...]) -> object:
    """Raise the error slot if set, else return the value(s)."""
    error, *values = results or (None,)
    if isinstance(error, BaseException):
        raise error
    if error:
        raise PipeException.create(str(error), ErrorCode.TASK_FAILED)
    match len(values):
        case 0: return None
        case 1: return values[0]
        case _: return tuple(values)


@asynccontextmanager
async def fetch_result(pipe: Pipe) -> AsyncIterator[object]:
    """Fetch one result from ``pipe`` and hold its slot until the block exits.

    Yields a single value, a tuple when the task produced several, or None.
    An exception in the error position is raised; any other truthy error is
    raised as PipeException(TASK_FAILED). consumer_done is called on exit
    either way.

    If the awaiting coroutine is cancelled before the result arrives, the
    waiter stays queued and releases its slot as soon as it is matched. If
    it is cancelled after delivery but before resuming, the slot is
    released immediately.
    """
    loop = asyncio.get_running_loop()
    delivered: asyncio.Future[tuple[tuple[object, ...], Continuation]] = loop.create_future()

    def resolve(payload: tuple[tuple[object, ...], Continuation]) -> None:
        if delivered.done():
            payload[1]()
        else:
            delivered.set_result(payload)

    def on_result(*args: object) -> None:
        *results, consumer_done = args
        payload = (tuple(results), consumer_done)
        if _running_loop() is loop:
            resolve(payload)  # type: ignore[arg-type]
        else:
            loop.call_soon_threadsafe(resolve, payload)

    pipe.fetch(on_result)
    try:
        results, consumer_done = await delivered
    except asyncio.CancelledError:
        # Result arrived but the wakeup was cancelled before it ran
        if delivered.done() and not delivered.cancelled():
            delivered.result()[1]()
        raise
    try:
        yield _unpack(results)
    finally:
        consumer_done()
