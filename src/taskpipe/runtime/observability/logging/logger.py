"""Structured logging for pipe internals.

Each pipe logs through a BoundLogger carrying its own context (the pipe id);
entries go to a renderer: human-readable console lines for development, JSON
lines for aggregation.

Unless configure_logging() has been called in the current context, level and
format come from TASKPIPE_LOG_LEVEL / TASKPIPE_LOG_FORMAT.

Quick Start:
    >>> from taskpipe.runtime.observability import get_logger, configure_logging
    >>>
    >>> configure_logging(format="json", level="DEBUG")  # optional override
    >>> log = get_logger("ingest")
    >>> log.bind(pipe="0x7f3a").debug("pair matched", running=2)
"""

from __future__ import annotations

import logging
import sys
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, TextIO, runtime_checkable

if TYPE_CHECKING:
    from taskpipe.foundation.config import LoggingSettings

JsonDict = dict[str, object]


# ─────────────────────────────────────────────────────────────────────────────
# Entries & Renderers
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class LogEntry:
    """One rendered log event."""

    timestamp: float
    level: str
    event: str
    context: JsonDict

    @property
    def ts_iso(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=UTC).isoformat()

    @property
    def ts_clock(self) -> str:
        """HH:MM:SS.mmm"""
        return datetime.fromtimestamp(self.timestamp, tz=UTC).strftime("%H:%M:%S.%f")[:-3]


@runtime_checkable
class LogRenderer(Protocol):
    """Protocol for log output renderers."""

    def render(self, entry: LogEntry) -> None: ...


@dataclass(slots=True)
class ConsoleRenderer:
    """One line per entry: ``time [level] event key=value ...``.

    ``output`` defaults to whatever ``sys.stderr`` is at render time;
    ``colors=None`` enables ANSI colors only on a tty.
    """

    output: TextIO | None = None
    colors: bool | None = None
    show_timestamp: bool = True

    def render(self, entry: LogEntry) -> None:
        out = self.output or sys.stderr
        paint = self.colors if self.colors is not None else getattr(out, "isatty", lambda: False)()
        tint = _ANSI if paint else _PLAIN
        head = f"{tint.get(entry.level, '')}[{entry.level}]{tint['reset']} {tint['bold']}{entry.event}{tint['reset']}"
        fields = " ".join(f"{k}={_show(v)}" for k, v in sorted(entry.context.items()) if k != "exc_info")
        line = " ".join(p for p in (entry.ts_clock if self.show_timestamp else "", head, fields) if p)
        print(line, file=out)
        if trace := entry.context.get("exc_info"):
            print(f"{tint['error']}{trace}{tint['reset']}", file=out)


@dataclass(slots=True)
class JsonRenderer:
    """JSON Lines output for log aggregation; ``output`` defaults to ``sys.stdout``."""

    output: TextIO | None = None

    def render(self, entry: LogEntry) -> None:
        import orjson
        record = {"timestamp": entry.ts_iso, "level": entry.level, "event": entry.event, **entry.context}
        print(orjson.dumps(record, default=repr, option=orjson.OPT_NON_STR_KEYS).decode(),
              file=self.output or sys.stdout)


@dataclass(slots=True)
class NoOpRenderer:
    """Discards everything."""

    def render(self, entry: LogEntry) -> None:
        pass


# ─────────────────────────────────────────────────────────────────────────────
# Logger
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class BoundLogger:
    """Logger with bound context. bind() returns a new logger and leaves this one as is.

    Example:
        >>> log = BoundLogger(context={"pipe": "ingest"})
        >>> log.info("task filled", pending_tasks=3)
        # => 10:30:45.123 [info] task filled pending_tasks=3 pipe="ingest"
    """

    context: JsonDict = field(default_factory=dict)
    _renderer: LogRenderer | None = None
    _level: int = logging.DEBUG

    def bind(self, **kw: object) -> BoundLogger:
        return BoundLogger(context={**self.context, **kw}, _renderer=self._renderer, _level=self._level)

    def is_enabled_for(self, level: int) -> bool:
        return level >= self._level

    def _log(self, level: int, event: str, **kw: object) -> None:
        if level < self._level:
            return
        entry = LogEntry(time.time(), logging.getLevelName(level).lower(), event, {**self.context, **kw})
        (self._renderer or _current_renderer()).render(entry)

    def debug(self, event: str, **kw: object) -> None: self._log(logging.DEBUG, event, **kw)
    def info(self, event: str, **kw: object) -> None: self._log(logging.INFO, event, **kw)
    def warning(self, event: str, **kw: object) -> None: self._log(logging.WARNING, event, **kw)
    def error(self, event: str, **kw: object) -> None: self._log(logging.ERROR, event, **kw)


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────


# Explicit overrides; None falls back to the environment settings
_renderer: ContextVar[LogRenderer | None] = ContextVar("log_renderer", default=None)
_level: ContextVar[int | None] = ContextVar("log_level", default=None)


def _build_renderer(format: str, output: TextIO | None, colors: bool | None) -> LogRenderer:  # noqa: A002
    match format:
        case "console": return ConsoleRenderer(output=output, colors=colors)
        case "json": return JsonRenderer(output=output)
        case "none": return NoOpRenderer()
        case _: raise ValueError(f"Unknown format: {format}. Use 'console', 'json', or 'none'")


def configure_logging(
    format: str = "console",  # noqa: A002 - shadows builtin but matches stdlib
    level: str = "INFO",
    *,
    output: TextIO | None = None,
    colors: bool | None = None,
) -> LogRenderer:
    """Override renderer and default level for the current context."""
    renderer = _build_renderer(format, output, colors)
    _level.set(getattr(logging, level.upper(), logging.INFO))
    _renderer.set(renderer)
    return renderer


def configure_from_settings(settings: LoggingSettings | None = None, *, output: TextIO | None = None) -> LogRenderer:
    """configure_logging() from LoggingSettings (defaults to the global settings)."""
    settings = settings or _settings()
    return configure_logging(settings.format, settings.level, output=output, colors=settings.colors)


def get_logger(name: str | None = None, **initial_context: object) -> BoundLogger:
    """Logger at the configured level. Name is added to context as 'logger'."""
    level = _level.get()
    if level is None:
        level = getattr(logging, _settings().level)
    return BoundLogger(context={**initial_context, **({"logger": name} if name else {})}, _level=level)


def _settings() -> LoggingSettings:
    from taskpipe.foundation.config import get_settings
    return get_settings().logging


def _current_renderer() -> LogRenderer:
    if (renderer := _renderer.get()) is not None:
        return renderer
    settings = _settings()
    return _build_renderer(settings.format, None, settings.colors)


_PLAIN = {"reset": "", "bold": "", "error": ""}
_ANSI = {"reset": "\033[0m", "bold": "\033[1m", "error": "\033[31m",
         "debug": "\033[2m", "info": "\033[32m", "warning": "\033[33m"}


def _show(v: object) -> str:
    match v:
        case str(): return f'"{v}"'
        case bool(): return str(v).lower()
        case int() | float() | None: return str(v)
        case dict() | list() | tuple(): return f"<{len(v)} items>"
        case _: return repr(v)
