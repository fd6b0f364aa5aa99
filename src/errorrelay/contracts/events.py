"""Records that cross the router/pipeline/delivery boundaries.

- Event: canonical normalized record submitted for delivery
- DeliveryOutcome: what happened when an Event was sent to the sink
- TotalQueryResult: answer to a counter query (possibly unresolved on peers)
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from errorrelay.contracts.enums import DeliveryStatus, QueryStatus, Severity


@dataclass(frozen=True, slots=True)
class Event:
    """A normalized event accepted by the authority.

    Attributes:
        timestamp: Integral epoch seconds assigned at acceptance
        severity: Event severity
        message: Event text, possibly generalized. Never empty.
        environment: Logical deployment identifier
        metadata: Mapping sent to the sink as the "Custom" field
        manual: True when produced by an explicit developer log call
    """

    timestamp: int
    severity: Severity
    message: str
    environment: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    manual: bool = False

    def __post_init__(self) -> None:
        if not self.message:
            raise ValueError("Event message must not be empty")


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """Result of delivering one Event.

    Attributes:
        status: Delivered, rejected by the sink, or transport failure
        attempts: Number of HTTP attempts made (0 in dry-run mode)
        status_code: HTTP status of the last response, if any
        error_count: Sink-reported error count for rejections
        error: Sink message or transport error text
    """

    status: DeliveryStatus
    attempts: int
    status_code: int | None = None
    error_count: int | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED


@dataclass(frozen=True, slots=True)
class TotalQueryResult:
    """Answer to a get_total() call.

    On the authority the query is a direct read and always RESOLVED. On a
    peer it waits for the authority's reply for a bounded time; when that
    expires the status is TIMED_OUT and total holds the last cached value
    (None if no reply has ever arrived).
    """

    severity: Severity
    status: QueryStatus
    total: int | None = None

    @property
    def resolved(self) -> bool:
        return self.status == QueryStatus.RESOLVED
