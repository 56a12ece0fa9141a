"""Shared pytest fixtures for the annotator tests."""

from __future__ import annotations

import pytest

from logdiag.config import (
    ENV_ENABLED,
    ENV_LIBRARY_VERSION,
    ENV_SKIP_CHECK,
    InstrumentationState,
    reset_instrumentation_state,
)


@pytest.fixture(autouse=True)
def _reset_process_state(monkeypatch):
    for name in (ENV_ENABLED, ENV_SKIP_CHECK, ENV_LIBRARY_VERSION):
        monkeypatch.delenv(name, raising=False)
    reset_instrumentation_state()
    yield
    monkeypatch.undo()
    reset_instrumentation_state()


@pytest.fixture()
def state() -> InstrumentationState:
    return InstrumentationState()
