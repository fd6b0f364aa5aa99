# src/errorrelay/relay/payload.py
"""Wire format for the remote ingestion endpoint."""

from typing import Any

from errorrelay.contracts.events import Event

# Origin tag for telemetry entries. Only the authority delivers.
TELEMETRY_SOURCE = "server"


def build_payload(event: Event) -> dict[str, Any]:
    """Build the JSON body for one event.

    The message is carried twice: once in the structured telemetry entry and
    once as the top-level message body. Metadata is sent as "Custom".

    Args:
        event: Normalized event to send

    Returns:
        JSON-compatible dict (metadata values are passed through as-is)
    """
    level = event.severity.wire_name
    return {
        "data": {
            "environment": event.environment,
            "body": {
                "telemetry": [
                    {
                        "level": level,
                        "type": "error",
                        "source": TELEMETRY_SOURCE,
                        "timestamp_ms": event.timestamp * 1000,
                        "body": {
                            "subtype": "xhr",
                            "message": event.message,
                        },
                    }
                ],
                "message": {
                    "body": event.message,
                },
            },
            "level": level,
            "timestamp": event.timestamp,
            "Custom": dict(event.metadata),
        }
    }
