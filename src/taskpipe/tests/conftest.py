"""Shared fixtures for taskpipe tests."""

from __future__ import annotations

import logging
import os

import pytest

from taskpipe import clear_settings_cache
from taskpipe.runtime.observability import BoundLogger

from .helpers import ListRenderer


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> object:
    """Isolate each test from TASKPIPE_* variables and the settings cache."""
    for key in list(os.environ):
        if key.startswith("TASKPIPE_"):
            monkeypatch.delenv(key)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def captured() -> tuple[BoundLogger, ListRenderer]:
    """Debug-level logger writing to an in-memory renderer."""
    renderer = ListRenderer()
    return BoundLogger(_renderer=renderer, _level=logging.DEBUG), renderer
