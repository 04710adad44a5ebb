"""Scripted producers and consumers used across the test suite."""

from __future__ import annotations

from dataclasses import dataclass, field

from taskpipe.runtime.concurrency import Continuation
from taskpipe.runtime.observability import LogEntry


@dataclass
class ListRenderer:
    """Renderer that keeps entries in memory."""

    entries: list[LogEntry] = field(default_factory=list)

    def render(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def events(self, level: str | None = None) -> list[str]:
        return [e.event for e in self.entries if level is None or e.level == level]


class Recorder:
    """Consumer that records each delivery and acknowledges at once."""

    def __init__(self) -> None:
        self.calls: list[tuple[object, ...]] = []

    def __call__(self, *args: object) -> None:
        *results, done = args
        self.calls.append(tuple(results))
        done()  # type: ignore[operator]


class Holder:
    """Consumer that records deliveries but keeps consumer_done for later."""

    def __init__(self) -> None:
        self.calls: list[tuple[object, ...]] = []
        self.acks: list[Continuation] = []

    def __call__(self, *args: object) -> None:
        *results, done = args
        self.calls.append(tuple(results))
        self.acks.append(done)  # type: ignore[arg-type]

    def release(self) -> None:
        self.acks.pop(0)()


class Deferred:
    """Task function that parks producer_done until the test completes it."""

    def __init__(self) -> None:
        self.started: list[tuple[object, ...]] = []
        self.pending: list[Continuation] = []

    def __call__(self, *args: object) -> None:
        *call_args, done = args
        self.started.append(tuple(call_args))
        self.pending.append(done)  # type: ignore[arg-type]

    def complete(self, *results: object, index: int = 0) -> None:
        self.pending.pop(index)(*results)
