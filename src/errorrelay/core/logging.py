# src/errorrelay/core/logging.py
"""Structured logging configuration for errorrelay.

Uses structlog for structured logging. Both structlog and stdlib logging are
configured to emit the same output (JSON or console): stdlib records are
routed through structlog's ProcessorFormatter, so a host application that
logs with logging.getLogger(__name__) shares one format with the relay.

The relay's own loggers all live under the "errorrelay" namespace. The
log-stream listener ignores that namespace, so relay diagnostics are never
relayed back into the pipeline.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Root logger name for everything the relay itself emits.
RELAY_LOGGER_NAMESPACE = "errorrelay"

# httpx/httpcore log every request at DEBUG/INFO. Hold them at WARNING even
# when the relay runs in DEBUG mode.
_NOISY_LOGGERS: tuple[str, ...] = (
    "httpx",
    "httpcore",
)


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Strip the _record and _from_structlog keys before rendering."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Route structlog and stdlib records to one stderr handler.

    Safe to call more than once. A subscribed relay log-stream handler on the
    root logger survives the reset.

    Args:
        json_output: One JSON object per line instead of console text
        level: Root level name, e.g. "DEBUG" or "WARNING"
    """
    log_level = getattr(logging, level.upper())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final_processors: list[Any] = [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            _remove_internal_fields,
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        ProcessorFormatter(
            processors=final_processors,
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = [h for h in root.handlers if getattr(h, "relay_listener", False)]
    root.addHandler(handler)
    root.setLevel(log_level)

    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
