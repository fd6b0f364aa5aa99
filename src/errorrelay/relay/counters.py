# src/errorrelay/relay/counters.py
"""Per-severity totals owned by the authority."""

import threading

from errorrelay.contracts.enums import Severity


class CounterRegistry:
    """Monotonic per-severity counters.

    Only the authority increments. Values never decrease and are never reset
    for the lifetime of the process. Peers hold no copy and must query the
    authority.

    Thread Safety:
        All methods take an internal lock, so direct reads from other
        threads see a consistent value.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._totals: dict[Severity, int] = dict.fromkeys(Severity, 0)

    def increment(self, severity: Severity) -> int:
        """Add one accepted event of this severity and return the new total."""
        with self._lock:
            self._totals[severity] += 1
            return self._totals[severity]

    def get(self, severity: Severity) -> int:
        with self._lock:
            return self._totals[severity]

    def snapshot(self) -> dict[Severity, int]:
        """Copy of all totals."""
        with self._lock:
            return dict(self._totals)
