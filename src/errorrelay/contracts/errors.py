# src/errorrelay/contracts/errors.py
"""Relay exceptions.

Only call-boundary misuse raises. Delivery and transport paths never raise
into the host; they log and carry on.
"""

from typing import Any


class RelayError(Exception):
    """Base class for all errorrelay exceptions."""


class ConfigurationMisuseError(RelayError, ValueError):
    """Raised when a developer-facing call is made with missing or invalid arguments.

    Attributes:
        operation: Name of the call that was misused
        message: Human-readable error description
    """

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


class InvalidSeverityError(ConfigurationMisuseError):
    """Raised when a value cannot be resolved to a Severity."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(
            "severity",
            f"{value!r} is not a valid severity. Expected one of: debug, info, warning, error, critical",
        )


class RouterSetupError(RelayError):
    """Raised when a router is wired to collaborators that do not fit its role."""
