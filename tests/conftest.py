# tests/conftest.py
"""Shared test fixtures and helpers.

Test Doubles:
- RecordingDispatcher: stands in for DeliveryDispatcher and records every
  submitted Event synchronously, so pipeline tests never start a thread
- FakeLogStream: LogStream whose notifications are pushed by the test

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/
"""

import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from errorrelay.contracts.enums import Severity
from errorrelay.contracts.events import Event
from errorrelay.core.config import SessionConfig
from errorrelay.relay.context import RelayContext

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Test Doubles
# =============================================================================

FIXED_NOW = 1_700_000_000.75


def fixed_clock() -> float:
    return FIXED_NOW


class RecordingDispatcher:
    """DeliveryDispatcher double that records submissions in order."""

    def __init__(self) -> None:
        self.events: list[Event] = []
        self.flush_count = 0
        self.closed = False

    def submit(self, event: Event) -> bool:
        self.events.append(event)
        return True

    def flush(self) -> None:
        self.flush_count += 1

    def close(self) -> None:
        self.closed = True

    @property
    def health_metrics(self) -> dict[str, Any]:
        return {"delivered": len(self.events), "dropped": 0}


class FakeLogStream:
    """LogStream driven by the test through emit()."""

    def __init__(self) -> None:
        self.callbacks: list[Callable[[str, Severity], None]] = []

    def subscribe(self, callback: Callable[[str, Severity], None]) -> Callable[[], None]:
        self.callbacks.append(callback)

        def unsubscribe() -> None:
            self.callbacks.remove(callback)

        return unsubscribe

    def emit(self, message: str, severity: Severity = Severity.ERROR) -> None:
        for callback in list(self.callbacks):
            callback(message, severity)


# =============================================================================
# Fixtures
# =============================================================================


def make_session(**overrides: Any) -> SessionConfig:
    """SessionConfig with test defaults; any field may be overridden."""
    values: dict[str, Any] = {
        "environment": "place-42",
        "default_metadata": {"build": "7", "server-id": "srv-1"},
        "server_token": "test-token",
        "sink_url": "https://sink.test/api/1/item/",
    }
    values.update(overrides)
    return SessionConfig(**values)


@pytest.fixture
def session() -> SessionConfig:
    return make_session()


@pytest.fixture
def context_factory() -> Callable[..., RelayContext]:
    """Build a RelayContext from session overrides with a fixed clock."""

    def factory(**overrides: Any) -> RelayContext:
        return RelayContext.from_config(make_session(**overrides), clock=fixed_clock)

    return factory


@pytest.fixture
def recording_dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def log_stream() -> FakeLogStream:
    return FakeLogStream()


@pytest.fixture
def clean_root_logger() -> Iterator[None]:
    """Restore root logger handlers and level after a test."""
    import logging

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
