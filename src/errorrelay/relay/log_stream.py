# src/errorrelay/relay/log_stream.py
"""Host log stream seam.

The relay subscribes to the host's log output and treats every notification
as an automatic LOG_EVENT candidate. LoggingLogStream adapts Python's
stdlib logging: it attaches a handler to a logger (root by default) and maps
each record to (message, Severity).

Records the relay causes itself are never fed back:
- loggers in the errorrelay, httpx and httpcore namespaces are ignored
- records emitted on the delivery thread are ignored
- records emitted while a callback is already running on the same thread
  are ignored
"""

import logging
import threading
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from errorrelay.contracts.enums import Severity
from errorrelay.core.logging import RELAY_LOGGER_NAMESPACE
from errorrelay.relay.dispatcher import DELIVERY_THREAD_NAME

LogCallback = Callable[[str, Severity], None]

_IGNORED_NAMESPACES: tuple[str, ...] = (RELAY_LOGGER_NAMESPACE, "httpx", "httpcore")


@runtime_checkable
class LogStream(Protocol):
    """Source of automatic (message, severity) notifications."""

    def subscribe(self, callback: LogCallback) -> Callable[[], None]:
        """Start calling callback for each log notification.

        Returns:
            A function that removes the subscription
        """
        ...


def _is_ignored_logger(name: str) -> bool:
    return any(name == ns or name.startswith(f"{ns}.") for ns in _IGNORED_NAMESPACES)


class _RelayRecordFilter(logging.Filter):
    """Drops records the relay causes itself.

    Runs in Handler.handle() before the handler lock is taken, so a relay
    record never waits on a host thread that holds the lock.
    """

    def __init__(self) -> None:
        super().__init__()
        self.local = threading.local()

    def filter(self, record: logging.LogRecord) -> bool:
        if _is_ignored_logger(record.name) or record.threadName == DELIVERY_THREAD_NAME:
            return False
        return not getattr(self.local, "active", False)


class _RelayLogHandler(logging.Handler):
    """logging.Handler that forwards records to a relay callback."""

    # Marker so configure_logging() keeps this handler when resetting root
    relay_listener = True

    def __init__(self, callback: LogCallback, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._callback = callback
        self._relay_filter = _RelayRecordFilter()
        self.addFilter(self._relay_filter)

    def emit(self, record: logging.LogRecord) -> None:
        local = self._relay_filter.local
        local.active = True
        try:
            message = self.format(record)
            self._callback(message, Severity.from_logging_level(record.levelno))
        except Exception:
            self.handleError(record)
        finally:
            local.active = False


class LoggingLogStream:
    """LogStream over stdlib logging.

    Example:
        stream = LoggingLogStream()  # root logger
        unsubscribe = stream.subscribe(lambda message, severity: ...)
        logging.getLogger("game").error("Players.Bob.Tool broke")
        unsubscribe()
    """

    def __init__(self, logger_name: str | None = None, *, level: int = logging.NOTSET) -> None:
        """Initialize the stream.

        Args:
            logger_name: Logger to listen on; None means the root logger
            level: Minimum record level forwarded
        """
        self._logger = logging.getLogger(logger_name)
        self._level = level

    def subscribe(self, callback: LogCallback) -> Callable[[], None]:
        handler = _RelayLogHandler(callback, self._level)
        self._logger.addHandler(handler)

        def unsubscribe() -> None:
            self._logger.removeHandler(handler)

        return unsubscribe
