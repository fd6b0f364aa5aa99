"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/relay.
Settings classes are NOT re-exported here - import them from
errorrelay.core.config.

Import patterns:
    from errorrelay.contracts import Event, Severity, RequestKind
    from errorrelay.core.config import RelaySettings, SessionConfig
"""

from errorrelay.contracts.enums import (
    DeliveryStatus,
    PeerRole,
    PipelineResult,
    QueryStatus,
    ReplyKind,
    RequestKind,
    Severity,
)
from errorrelay.contracts.errors import (
    ConfigurationMisuseError,
    InvalidSeverityError,
    RelayError,
    RouterSetupError,
)
from errorrelay.contracts.events import DeliveryOutcome, Event, TotalQueryResult

__all__ = [
    "ConfigurationMisuseError",
    "DeliveryOutcome",
    "DeliveryStatus",
    "Event",
    "InvalidSeverityError",
    "PeerRole",
    "PipelineResult",
    "QueryStatus",
    "RelayError",
    "ReplyKind",
    "RequestKind",
    "RouterSetupError",
    "Severity",
    "TotalQueryResult",
]
