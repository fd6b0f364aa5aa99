"""Core infrastructure: configuration loading and logging."""

from errorrelay.core.config import (
    RelaySettings,
    SessionConfig,
    load_settings,
)
from errorrelay.core.logging import configure_logging, get_logger

__all__ = [
    "RelaySettings",
    "SessionConfig",
    "configure_logging",
    "get_logger",
    "load_settings",
]
