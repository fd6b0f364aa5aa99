# src/errorrelay/relay/delivery.py
"""DeliveryClient: ships Events to the remote sink with bounded retry.

Retry policy:
- Transport failures (no response) are retried immediately, up to
  MAX_DELIVERY_ATTEMPTS attempts in total, with no backoff and no jitter.
- A response the sink marks as an error is never retried.
- Neither case raises. Both are logged as warnings and reported through
  the returned DeliveryOutcome; nothing is queued for a later resend.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_none

from errorrelay.contracts.enums import DeliveryStatus
from errorrelay.contracts.events import DeliveryOutcome, Event
from errorrelay.core.config import SessionConfig
from errorrelay.relay.payload import build_payload

logger = structlog.get_logger(__name__)

# Total tries, not retries: try, retry, retry.
MAX_DELIVERY_ATTEMPTS = 3


def _parse_rejection(response: httpx.Response) -> tuple[int | None, str]:
    """Pull the sink's error count and message out of a response body."""
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None, response.text
    if not isinstance(body, dict):
        return None, response.text
    err = body.get("err")
    error_count = err if isinstance(err, int) and not isinstance(err, bool) else None
    message = body.get("message")
    return error_count, str(message) if message is not None else response.text


def _is_rejection(response: httpx.Response) -> bool:
    if not response.is_success:
        return True
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return False
    return isinstance(body, dict) and bool(body.get("err"))


class DeliveryClient:
    """Serializes Events and POSTs them to the sink.

    Uses the server-scoped token. Peers never construct one; they forward to
    the authority.

    Example:
        client = DeliveryClient(session)
        outcome = client.deliver(event)
        if not outcome.succeeded:
            ...
        client.close()
    """

    def __init__(self, config: SessionConfig, *, client: httpx.Client | None = None) -> None:
        """Initialize delivery client.

        Args:
            config: Session providing URL, token, timeout and dry-run flag
            client: Optional pre-built httpx.Client (owned by the caller)
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.request_timeout_seconds)

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            self._config.token_header: self._config.server_token,
        }

    def _encode(self, event: Event) -> bytes:
        # default=str so arbitrary metadata values never break delivery
        return json.dumps(build_payload(event), default=str).encode("utf-8")

    def deliver(self, event: Event) -> DeliveryOutcome:
        """Send one event. Never raises.

        Args:
            event: Accepted event

        Returns:
            DeliveryOutcome describing the result
        """
        if self._config.dry_run:
            logger.info(
                "Dry run - event not sent to sink",
                severity=event.severity.wire_name,
                environment=event.environment,
            )
            return DeliveryOutcome(status=DeliveryStatus.DELIVERED, attempts=0)

        body = self._encode(event)
        attempts = 0
        try:
            for attempt_state in Retrying(
                stop=stop_after_attempt(MAX_DELIVERY_ATTEMPTS),
                wait=wait_none(),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt_state:
                    attempts = attempt_state.retry_state.attempt_number
                    response = self._client.post(
                        self._config.sink_url,
                        content=body,
                        headers=self._headers(),
                    )
        except httpx.TransportError as e:
            logger.warning(
                "Network error sending event to sink",
                attempts=attempts,
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryOutcome(
                status=DeliveryStatus.TRANSPORT_FAILED,
                attempts=attempts,
                error=str(e),
            )
        except httpx.HTTPError as e:
            # Request could not be built (bad URL etc.) - not worth retrying
            logger.warning("Event could not be sent to sink", attempts=attempts, error=str(e))
            return DeliveryOutcome(
                status=DeliveryStatus.TRANSPORT_FAILED,
                attempts=attempts,
                error=str(e),
            )

        if _is_rejection(response):
            error_count, message = _parse_rejection(response)
            logger.warning(
                "Sink rejected event",
                error_count=error_count,
                response_message=message,
                status_code=response.status_code,
            )
            return DeliveryOutcome(
                status=DeliveryStatus.REJECTED,
                attempts=attempts,
                status_code=response.status_code,
                error_count=error_count,
                error=message,
            )

        logger.debug("Event delivered", status_code=response.status_code, attempts=attempts)
        return DeliveryOutcome(
            status=DeliveryStatus.DELIVERED,
            attempts=attempts,
            status_code=response.status_code,
        )

    def close(self) -> None:
        """Close the HTTP client if this instance created it. Idempotent."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> DeliveryClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
