"""All levels, kinds and statuses used across relay boundaries."""

import logging
from enum import IntEnum, StrEnum
from typing import Any

from errorrelay.contracts.errors import InvalidSeverityError


class Severity(IntEnum):
    """Ordered severity of a relayed event.

    The integer value is the wire-independent code peers exchange; the
    wire_name is the string the remote sink expects. The two are bijective.
    """

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    CRITICAL = 4

    @property
    def wire_name(self) -> str:
        """Canonical lower-case level string sent to the remote sink."""
        return self.name.lower()

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Resolve a Severity from a member, integer code or level name.

        Args:
            value: Severity member, its integer code, or its name/wire name
                (case-insensitive)

        Returns:
            The matching Severity

        Raises:
            InvalidSeverityError: If value does not name a severity
        """
        if isinstance(value, cls):
            return value
        # bool is an int subclass - True must not silently mean INFO
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise InvalidSeverityError(value) from None
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidSeverityError(value) from None
        raise InvalidSeverityError(value)

    @classmethod
    def from_logging_level(cls, levelno: int) -> "Severity":
        """Map a stdlib logging level to a Severity, rounding down."""
        if levelno >= logging.CRITICAL:
            return cls.CRITICAL
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARNING
        if levelno >= logging.INFO:
            return cls.INFO
        return cls.DEBUG


class PeerRole(StrEnum):
    """Role of a process in the relay topology. Fixed at startup."""

    AUTHORITY = "authority"
    PEER = "peer"


class RequestKind(StrEnum):
    """Requests a peer sends to the authority. Closed set."""

    SET_METADATA = "set_metadata"
    LOG_EVENT = "log_event"
    GET_TOTAL = "get_total"


class ReplyKind(StrEnum):
    """Replies the authority sends back to a single peer."""

    TOTAL = "total"


class PipelineResult(StrEnum):
    """What the authority pipeline did with a submitted event."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    DISABLED = "disabled"


class DeliveryStatus(StrEnum):
    """Outcome of a single delivery to the remote sink.

    Values:
        DELIVERED: Sink accepted the payload (or dry-run mode)
        REJECTED: Sink responded with an application-level error
        TRANSPORT_FAILED: No response after all attempts
    """

    DELIVERED = "delivered"
    REJECTED = "rejected"
    TRANSPORT_FAILED = "transport_failed"


class QueryStatus(StrEnum):
    """Result status of a counter query."""

    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
