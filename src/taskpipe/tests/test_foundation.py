"""Tests for settings, error models and structured logging."""

from __future__ import annotations

import contextvars
import io
import logging

import orjson
import pytest
from pydantic import ValidationError

from taskpipe import ErrorCode, Pipe, PipeError, PipeException, PipeSettings, get_settings
from taskpipe.runtime.observability import (
    BoundLogger,
    ConsoleRenderer,
    JsonRenderer,
    NoOpRenderer,
    configure_from_settings,
    configure_logging,
    get_logger,
)

from .helpers import ListRenderer, Recorder


# ─────────────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────────────


def test_settings_defaults() -> None:
    settings = get_settings()
    assert settings.default_concurrency == 1
    assert settings.catch_errors is True
    assert settings.logging.level == "INFO"
    assert settings.logging.format == "console"


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKPIPE_DEFAULT_CONCURRENCY", "8")
    monkeypatch.setenv("TASKPIPE_LOG_LEVEL", "debug")
    monkeypatch.setenv("TASKPIPE_LOG_FORMAT", "json")

    settings = get_settings()
    assert settings.default_concurrency == 8
    assert settings.logging.level == "DEBUG"
    assert settings.logging.format == "json"


def test_settings_cached() -> None:
    assert get_settings() is get_settings()


def test_settings_reject_non_positive_concurrency(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKPIPE_DEFAULT_CONCURRENCY", "0")
    with pytest.raises(ValidationError):
        PipeSettings()


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────


def test_error_from_exception() -> None:
    err = PipeError.from_exception(ValueError("bad row"), "parse")
    assert err.message == "parse: bad row"
    assert err.code == ErrorCode.TASK_FAILED
    assert "ValueError: bad row" in (err.details or "")


def test_error_is_frozen() -> None:
    err = PipeError(message="consumer_done called more than once", code=ErrorCode.ALREADY_ACKNOWLEDGED)
    with pytest.raises(ValidationError):
        err.message = "changed"  # type: ignore[misc]


def test_error_message_required() -> None:
    with pytest.raises(ValidationError):
        PipeError(message="   ")
    assert PipeError(message=KeyError()).message == "KeyError"  # type: ignore[arg-type]


def test_exception_wraps_error() -> None:
    exc = PipeException.create("concurrency must be positive", ErrorCode.INVALID_CONCURRENCY)
    assert exc.error.code == ErrorCode.INVALID_CONCURRENCY
    assert str(exc) == "concurrency must be positive"
    assert exc.error.details is None


# ─────────────────────────────────────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────────────────────────────────────


def test_console_renderer_plain_output() -> None:
    buf = io.StringIO()
    log = BoundLogger(context={"pipe": "a"}, _renderer=ConsoleRenderer(output=buf, colors=False, show_timestamp=False))
    log.info("pair matched", running=1)
    assert buf.getvalue() == '[info] pair matched pipe="a" running=1\n'


def test_json_renderer_output() -> None:
    buf = io.StringIO()
    log = BoundLogger(_renderer=JsonRenderer(output=buf)).bind(pipe="b")
    log.warning("slot released", running=0)

    record = orjson.loads(buf.getvalue())
    assert record["event"] == "slot released"
    assert record["level"] == "warning"
    assert record["pipe"] == "b"
    assert record["running"] == 0


def test_level_filtering_and_bind() -> None:
    renderer = ListRenderer()
    log = BoundLogger(_renderer=renderer, _level=logging.WARNING)
    log.debug("hidden")
    log.info("hidden")
    log.bind(k=1).error("shown")

    assert renderer.events() == ["shown"]
    assert renderer.entries[0].context == {"k": 1}
    assert log.context == {}


def test_configure_logging_formats() -> None:
    def run() -> None:
        assert isinstance(configure_logging("json"), JsonRenderer)
        assert isinstance(configure_logging("none", "DEBUG"), NoOpRenderer)
        assert get_logger("x").is_enabled_for(logging.DEBUG)
        with pytest.raises(ValueError):
            configure_logging("xml")

    contextvars.copy_context().run(run)


def test_configure_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKPIPE_LOG_FORMAT", "none")
    monkeypatch.setenv("TASKPIPE_LOG_LEVEL", "ERROR")

    def run() -> None:
        assert isinstance(configure_from_settings(), NoOpRenderer)
        log = get_logger("pipe")
        assert log.context == {"logger": "pipe"}
        assert not log.is_enabled_for(logging.WARNING)

    contextvars.copy_context().run(run)


def test_unconfigured_pipe_logs_per_environment(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setenv("TASKPIPE_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("TASKPIPE_LOG_FORMAT", "json")

    contextvars.copy_context().run(lambda: Pipe().fill(lambda done: done(None, 1)).fetch(Recorder()))

    records = [orjson.loads(line) for line in capsys.readouterr().out.splitlines()]
    events = [r["event"] for r in records]
    assert "task filled" in events
    assert "slot released" in events
    assert all(r["logger"] == "taskpipe.pipe" for r in records)


def test_unconfigured_default_is_quiet_at_info(capsys: pytest.CaptureFixture[str]) -> None:
    contextvars.copy_context().run(lambda: Pipe().fill(lambda done: done(None, 1)).fetch(Recorder()))

    captured = capsys.readouterr()
    assert captured.out == "" and captured.err == ""
