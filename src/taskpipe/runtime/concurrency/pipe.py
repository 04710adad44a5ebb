"""Concurrency-bounded rendezvous between producers and consumers.

A Pipe matches tasks (producer work) with waiters (consumer requests) in
strict arrival order: the Nth task's result goes to the Nth waiter. At most
``concurrency`` matched pairs are in flight at any time.

Completion is two-phase. A task reports its result by calling
``producer_done(error, *values)``; the pipe then hands the result to the
waiter's callback along with ``consumer_done``. Only ``consumer_done()``
frees the concurrency slot, so a slow consumer holds back producers.

Example:
    >>> def add(a, b, done):
    ...     done(None, a + b)
    >>> def show(error, value, done):
    ...     print(value)
    ...     done()
    >>> Pipe(1).fill(add, 10, 15).fill(add, 1, 2).flush(show)
    25
    3
    Pipe(concurrency=1, running=0, pending_tasks=0, pending_waiters=0)

Caller obligations:
    - A consumer that never calls ``consumer_done`` holds its slot forever.
    - ``reset(force=True)`` while pairs are in flight lets their eventual
      ``consumer_done`` calls drive ``running`` below zero.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from typing import TYPE_CHECKING, Callable, Final

from taskpipe.foundation.config import get_settings
from taskpipe.foundation.errors import ErrorCode, PipeError, PipeException
from taskpipe.runtime.observability.logging import BoundLogger, get_logger

from .records import Task, Waiter

if TYPE_CHECKING:
    from .records import Continuation

__all__ = ["Pipe", "UNBOUNDED"]

UNBOUNDED: Final[float] = math.inf
"""Concurrency sentinel: run every task as soon as it is fetched."""

_DEFAULT: Final = object()


def _normalize_concurrency(value: object) -> int | float:
    """Falsy means 1; otherwise a positive integer or UNBOUNDED."""
    if not value:
        return 1
    if isinstance(value, bool):
        return 1
    if isinstance(value, int) and value > 0:
        return value
    if isinstance(value, float) and value > 0 and (value == UNBOUNDED or value.is_integer()):
        return value if value == UNBOUNDED else int(value)
    raise PipeException.create(
        f"concurrency must be a positive integer or UNBOUNDED, got {value!r}",
        ErrorCode.INVALID_CONCURRENCY,
    )


def _describe(func: Callable[..., object]) -> str:
    return getattr(func, "__qualname__", None) or repr(func)


class _Once:
    """One-shot continuation. A second call raises ALREADY_ACKNOWLEDGED."""

    __slots__ = ("_target", "_name", "_lock", "_fired")

    def __init__(self, target: Callable[..., None], name: str, lock: threading.RLock) -> None:
        self._target, self._name, self._lock = target, name, lock
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def __call__(self, *args: object) -> None:
        with self._lock:
            if self._fired:
                raise PipeException.create(f"{self._name} called more than once", ErrorCode.ALREADY_ACKNOWLEDGED)
            self._fired = True
        self._target(*args)

    def __repr__(self) -> str:
        return f"<{self._name} fired={self._fired}>"


class Pipe:
    """Ordered task/waiter matcher with a concurrency limit.

    Args:
        concurrency: Maximum matched pairs in flight. Falsy means 1;
            UNBOUNDED runs tasks as soon as they are fetched. Only when the
            argument is omitted entirely is ``TASKPIPE_DEFAULT_CONCURRENCY``
            used: ``Pipe()`` follows the setting, ``Pipe(None)`` is always 1.
        *tasks: Initial tasks. They wait in the queue until a fetch or
            flush runs the matching step.
        catch_errors: Deliver exceptions raised by a task function to its
            waiter as the error argument. Defaults to ``TASKPIPE_CATCH_ERRORS``.
        logger: Logger to use instead of the module default.

    Every operation except ``count`` returns the pipe for chaining. All
    state changes are serialized under one re-entrant lock; user callables
    run outside it.
    """

    __slots__ = ("_concurrency", "_tasks", "_waiters", "_running", "_catch_errors", "_lock", "_local", "_log")

    def __init__(
        self,
        concurrency: int | float | None = _DEFAULT,  # type: ignore[assignment]
        *tasks: Task,
        catch_errors: bool | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        settings = get_settings()
        if concurrency is _DEFAULT:
            concurrency = settings.default_concurrency
        self._concurrency = _normalize_concurrency(concurrency)
        self._tasks: deque[Task] = deque(tasks)
        self._waiters: deque[Waiter] = deque()
        self._running = 0
        self._catch_errors = settings.catch_errors if catch_errors is None else catch_errors
        self._lock = threading.RLock()
        self._local = threading.local()
        self._log = (logger or get_logger("taskpipe.pipe")).bind(pipe=hex(id(self)))

    # ─────────────────────────────────────────────────────────────────────────
    # Introspection
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def concurrency(self) -> int | float:
        return self._concurrency

    @property
    def running(self) -> int:
        """Matched pairs whose consumer has not yet called consumer_done."""
        return self._running

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    @property
    def pending_waiters(self) -> int:
        return len(self._waiters)

    def __len__(self) -> int:
        return self.count()

    def __repr__(self) -> str:
        return (f"Pipe(concurrency={self._concurrency}, running={self._running}, "
                f"pending_tasks={len(self._tasks)}, pending_waiters={len(self._waiters)})")

    # ─────────────────────────────────────────────────────────────────────────
    # Public operations
    # ─────────────────────────────────────────────────────────────────────────

    def fill(self, fn: Callable[..., object], *args: object, context: object | None = None) -> Pipe:
        """Enqueue ``fn(*args, producer_done)`` as a task.

        The function is not checked until it is invoked. If a waiter is
        pending and a slot is free, the task starts before fill returns.
        """
        return self.fill_task(Task.create(fn, *args, context=context))

    def fill_task(self, task: Task) -> Pipe:
        """Enqueue a pre-built task."""
        with self._lock:
            self._tasks.append(task)
            pending = len(self._tasks)
        self._log.debug("task filled", task=_describe(task.fn), pending_tasks=pending)
        return self._start()

    def fetch(self, callback: Callable[..., object], context: object | None = None) -> Pipe:
        """Register ``callback(error, *values, consumer_done)`` for the next result.

        Exactly one waiter is queued per call, whether or not a task is
        pending. It receives the result of the task at the same position
        in arrival order.
        """
        return self.fetch_waiter(Waiter.create(callback, context))

    def fetch_waiter(self, waiter: Waiter) -> Pipe:
        """Enqueue a pre-built waiter."""
        with self._lock:
            self._waiters.append(waiter)
            pending = len(self._waiters)
        self._log.debug("waiter queued", callback=_describe(waiter.callback), pending_waiters=pending)
        return self._start()

    def flush(self, callback: Callable[..., object], context: object | None = None) -> Pipe:
        """Fetch every task currently in the backlog with the same callback.

        Waiters already queued count against the backlog. Tasks filled after
        this call are not drained.
        """
        with self._lock:
            pending = len(self._tasks) - len(self._waiters)
        self._log.debug("flushing", pending=max(pending, 0))
        for _ in range(pending):
            self.fetch(callback, context)
        return self

    def reset(self, force: bool = False) -> Pipe:
        """Drop all unmatched tasks and waiters.

        Pairs already in flight keep running. With ``force`` the running
        count is zeroed too, so the full limit is available immediately;
        stale consumer_done calls from earlier pairs will then push the
        count below zero.
        """
        with self._lock:
            dropped_tasks, dropped_waiters = len(self._tasks), len(self._waiters)
            self._tasks.clear()
            self._waiters.clear()
            in_flight = self._running
            if force:
                self._running = 0
        self._log.debug("pipe reset", force=bool(force), dropped_tasks=dropped_tasks,
                        dropped_waiters=dropped_waiters, in_flight=in_flight)
        return self

    def count(self, alternate: bool = False, exclude_running: bool = False) -> int:
        """Queued tasks plus running pairs.

        Args:
            alternate: Count queued waiters instead of queued tasks.
            exclude_running: Leave running pairs out of the sum.
        """
        with self._lock:
            queued = len(self._waiters) if alternate else len(self._tasks)
            return queued + (0 if exclude_running else self._running)

    # ─────────────────────────────────────────────────────────────────────────
    # Matching and the completion chain
    # ─────────────────────────────────────────────────────────────────────────

    def _start(self) -> Pipe:
        local = self._local
        outer = getattr(local, "draining", False)
        local.draining = True
        try:
            while (pair := self._next_pair()) is not None:
                self._run(*pair)
        finally:
            local.draining = outer
        return self

    def _next_pair(self) -> tuple[Task, Waiter, int] | None:
        """Pop the head task and head waiter if a slot is free."""
        with self._lock:
            if self._tasks and self._waiters and self._running < self._concurrency:
                self._running += 1
                return self._tasks.popleft(), self._waiters.popleft(), self._running
        return None

    def _run(self, task: Task, waiter: Waiter, running: int) -> None:
        if self._log.is_enabled_for(logging.DEBUG):
            self._log.debug("pair matched", task=_describe(task.fn), callback=_describe(waiter.callback),
                            running=running)
        producer_done = _Once(lambda *results: self._deliver(waiter, results), "producer_done", self._lock)
        try:
            task.invoke(producer_done)
        except Exception as exc:
            if not self._catch_errors or producer_done.fired:
                raise
            error = PipeError.from_exception(exc, _describe(task.fn))
            self._log.error("task raised before completing", code=error.code, error=error.message,
                            exc_info=error.details)
            producer_done(exc)

    def _deliver(self, waiter: Waiter, results: tuple[object, ...]) -> None:
        consumer_done: Continuation = _Once(self._release, "consumer_done", self._lock)
        waiter.invoke(results, consumer_done)

    def _release(self, *_: object) -> None:
        with self._lock:
            self._running -= 1
            running = self._running
        if running < 0:
            self._log.warning("running count below zero after forced reset", running=running)
        else:
            self._log.debug("slot released", running=running)
        # A _start loop already on this thread re-checks for pairs once the
        # current _run returns, so synchronous chains stay flat.
        if not getattr(self._local, "draining", False):
            self._start()
