# src/errorrelay/relay/context.py
"""RelayContext: the one explicitly owned bundle of per-process relay state."""

import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from errorrelay.core.config import RelaySettings, SessionConfig
from errorrelay.relay.counters import CounterRegistry
from errorrelay.relay.dedup import DeduplicationStore
from errorrelay.relay.normalizer import EventNormalizer


@dataclass
class RelayContext:
    """Session config, dedup store and counters for one process.

    Built once at startup and held by the router. The lock guards every
    read-modify-write of the dedup store and of the pending metadata slot,
    so concurrent pipeline runs see a consistent view.

    Example:
        context = RelayContext.from_settings(load_settings(path))
        router = create_router(PeerRole.AUTHORITY, context, transport)
    """

    config: SessionConfig
    dedup: DeduplicationStore
    counters: CounterRegistry = field(default_factory=CounterRegistry)
    clock: Callable[[], float] = time.time
    lock: threading.RLock = field(default_factory=threading.RLock)

    @classmethod
    def from_config(cls, config: SessionConfig, *, clock: Callable[[], float] = time.time) -> "RelayContext":
        """Build a context whose dedup store reads the live session flags."""
        return cls(config=config, dedup=DeduplicationStore(config), clock=clock)

    @classmethod
    def from_settings(cls, settings: RelaySettings, *, clock: Callable[[], float] = time.time) -> "RelayContext":
        return cls.from_config(SessionConfig.from_settings(settings), clock=clock)

    def normalizer(self) -> EventNormalizer:
        return EventNormalizer(self.config, clock=self.clock)

    def set_pending_metadata(self, metadata: Mapping[str, Any]) -> None:
        """Replace the one-shot metadata slot."""
        with self.lock:
            self.config.set_pending_metadata(metadata)
