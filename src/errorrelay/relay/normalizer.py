# src/errorrelay/relay/normalizer.py
"""Turns a raw (message, severity) pair into a canonical Event."""

import time
from collections.abc import Callable, Mapping
from typing import Any

from errorrelay.contracts.enums import Severity
from errorrelay.contracts.events import Event
from errorrelay.core.config import SessionConfig

# Key in pending metadata that overrides the event environment instead of
# being sent as custom metadata.
RESERVED_ENVIRONMENT_KEY = "environment"

EMPTY_MESSAGE_PLACEHOLDER = "<empty message>"


class EventNormalizer:
    """Builds Events from raw relay input and session defaults.

    Reads configuration only. It neither consumes the pending metadata slot
    nor touches deduplication or counters; the pipeline hands it the
    pending metadata it took under the context lock.

    Example:
        normalizer = EventNormalizer(session)
        event = normalizer.normalize(True, Severity.ERROR, "boom", pending_metadata={"user": "7"})
    """

    def __init__(self, config: SessionConfig, *, clock: Callable[[], float] = time.time) -> None:
        self._config = config
        self._clock = clock

    def normalize(
        self,
        manual: bool,
        severity: Severity,
        message: Any,
        pending_metadata: Mapping[str, Any] | None = None,
    ) -> Event:
        """Produce an Event stamped with the current time.

        Args:
            manual: True for explicit developer log calls
            severity: Event severity
            message: Raw message; stringified
            pending_metadata: One-shot metadata to apply (manual calls only)

        Returns:
            The normalized Event
        """
        text = str(message)
        if not text:
            text = EMPTY_MESSAGE_PLACEHOLDER

        environment, metadata = self.resolve_context(manual, pending_metadata)
        return Event(
            timestamp=int(self._clock()),
            severity=severity,
            message=text,
            environment=environment,
            metadata=metadata,
            manual=manual,
        )

    def resolve_context(
        self,
        manual: bool,
        pending_metadata: Mapping[str, Any] | None,
    ) -> tuple[str, dict[str, Any]]:
        """Resolve (environment, metadata) for an event."""
        if not manual or pending_metadata is None:
            return self._config.environment, dict(self._config.default_metadata)

        if RESERVED_ENVIRONMENT_KEY in pending_metadata:
            environment = str(pending_metadata[RESERVED_ENVIRONMENT_KEY])
            metadata = {k: v for k, v in pending_metadata.items() if k != RESERVED_ENVIRONMENT_KEY}
            return environment, metadata

        return self._config.environment, dict(pending_metadata)
