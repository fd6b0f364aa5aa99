# src/errorrelay/relay/dedup.py
"""Session-scoped deduplication of relayed messages.

The store remembers every accepted (possibly generalized) message for the
lifetime of the process. There is no eviction: forgetting a message would
let it be delivered again, which changes observable behaviour. Memory grows
with the number of distinct messages seen.
"""

import re

from errorrelay.core.config import DEFAULT_PLAYER_PATTERN, SessionConfig

PLAYER_PLACEHOLDER = "Players.<PLAYER>."


def generalize_message(message: str, pattern: re.Pattern[str] | str = DEFAULT_PLAYER_PATTERN) -> str:
    """Replace every per-player path segment with a fixed placeholder.

    Example:
        >>> generalize_message("Players.Bob.Tool broke")
        'Players.<PLAYER>.Tool broke'
    """
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
    return compiled.sub(PLAYER_PLACEHOLDER, message)


class DeduplicationStore:
    """Remembers accepted messages and rejects repeats.

    The ignore-duplicates and generalize flags, and the player pattern, are
    read from the session on every call, so flags assigned after startup take
    effect on the next event.

    Thread Safety:
        NOT thread-safe. RelayContext serializes check-then-record under
        its lock.
    """

    def __init__(self, config: SessionConfig) -> None:
        self._config = config
        self._history: list[str] = []
        self._seen: set[str] = set()

    @property
    def ignore_duplicates(self) -> bool:
        return self._config.ignore_duplicates

    @property
    def generalize_messages(self) -> bool:
        return self._config.generalize_client_errors

    def generalize(self, message: str) -> str:
        """Return the dedup key for a message (generalized when enabled)."""
        if self.generalize_messages:
            # re caches compiled patterns by source string
            return generalize_message(message, self._config.player_pattern)
        return message

    def should_accept(self, message: str) -> bool:
        """Whether an already-normalized message may proceed. Never mutates or logs."""
        return not (self.ignore_duplicates and message in self._seen)

    def record(self, message: str) -> None:
        """Append an accepted message to the history."""
        self._history.append(message)
        self._seen.add(message)

    @property
    def history(self) -> tuple[str, ...]:
        """Accepted messages in acceptance order, repeats included."""
        return tuple(self._history)

    def __contains__(self, message: object) -> bool:
        return message in self._seen

    def __len__(self) -> int:
        return len(self._history)
