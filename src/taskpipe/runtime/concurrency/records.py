"""Task and waiter records held in a pipe's queues.

A Task is producer work: a function called with its stored arguments plus
one trailing continuation. A Waiter is a consumer registration: a callback
that receives exactly one task's result plus its own trailing continuation.

Both records carry an optional context. When set, the context is bound as
the callable's receiver, the way a plain function becomes a method:

    >>> class Store:
    ...     def save(self, error, value, done): ...
    >>> Waiter.create(Store.save, context=store)  # called as store.save(...)
"""

from __future__ import annotations

import types
from dataclasses import dataclass, field
from typing import Callable

Continuation = Callable[..., None]


def _bind(func: Callable[..., object], context: object | None) -> Callable[..., object]:
    return func if context is None else types.MethodType(func, context)


@dataclass(frozen=True, slots=True)
class Task:
    """Unit of producer work.

    Attributes:
        fn: Callable invoked as ``fn(*args, producer_done)``
        args: Stored positional arguments
        context: Optional receiver bound to ``fn`` at invocation
    """

    fn: Callable[..., object]
    args: tuple[object, ...] = ()
    context: object | None = field(default=None, repr=False)

    @classmethod
    def create(cls, fn: Callable[..., object], *args: object, context: object | None = None) -> Task:
        """Build a task from a function and its arguments."""
        return cls(fn=fn, args=args, context=context)

    def invoke(self, producer_done: Continuation) -> object:
        """Call the task function with its arguments and the continuation appended."""
        return _bind(self.fn, self.context)(*self.args, producer_done)


@dataclass(frozen=True, slots=True)
class Waiter:
    """Pending consumer awaiting exactly one result.

    Attributes:
        callback: Callable invoked as ``callback(*results, consumer_done)``
        context: Optional receiver bound to ``callback`` at invocation
    """

    callback: Callable[..., object]
    context: object | None = field(default=None, repr=False)

    @classmethod
    def create(cls, callback: Callable[..., object], context: object | None = None) -> Waiter:
        return cls(callback=callback, context=context)

    def invoke(self, results: tuple[object, ...], consumer_done: Continuation) -> object:
        """Deliver results to the callback with the continuation appended."""
        return _bind(self.callback, self.context)(*results, consumer_done)
