# src/errorrelay/relay/dispatcher.py
"""DeliveryDispatcher runs deliveries off the dispatch path.

The authority pipeline accepts events synchronously (normalize, dedup, count)
and hands them here. A background thread drains a bounded queue and calls
DeliveryClient.deliver() for each event, so one slow or failing delivery does
not stall processing of unrelated events.

Thread Safety:
    - submit() is called from whatever thread runs the router (non-blocking
      unless the queue is full)
    - _delivery_loop() runs in the background delivery thread
    - _dropped is protected by _metrics_lock (written from both threads)
    - All other metrics are only modified by the delivery thread
"""

import queue
import threading
from typing import Any

import structlog

from errorrelay.contracts.enums import DeliveryStatus
from errorrelay.contracts.events import Event
from errorrelay.relay.delivery import DeliveryClient

logger = structlog.get_logger(__name__)

DELIVERY_THREAD_NAME = "errorrelay-delivery"


class DeliveryDispatcher:
    """Queues accepted events for background delivery.

    Failure handling:
    - DeliveryClient.deliver() reports failures in its outcome and never
      raises; unexpected exceptions are still caught and logged so the
      worker keeps running
    - A full queue blocks submit() for up to enqueue_timeout seconds, then
      drops the event with an error log

    Example:
        dispatcher = DeliveryDispatcher(DeliveryClient(session))
        dispatcher.submit(event)
        dispatcher.flush()
        dispatcher.close()
    """

    def __init__(
        self,
        client: DeliveryClient,
        *,
        queue_size: int = 1000,
        enqueue_timeout: float = 30.0,
    ) -> None:
        """Initialize and start the delivery thread.

        Args:
            client: Client performing the actual HTTP delivery
            queue_size: Maximum events waiting for delivery
            enqueue_timeout: Seconds submit() may block on a full queue
        """
        self._client = client
        self._enqueue_timeout = enqueue_timeout

        self._delivered = 0
        self._rejected = 0
        self._transport_failed = 0
        self._dropped = 0

        self._shutdown_event = threading.Event()
        self._metrics_lock = threading.Lock()
        self._closed = False
        self._thread_ready = threading.Event()

        self._queue: queue.Queue[Event | None] = queue.Queue(maxsize=queue_size)

        # Daemon so an unclosed dispatcher never keeps the host process alive
        self._thread = threading.Thread(
            target=self._delivery_loop,
            name=DELIVERY_THREAD_NAME,
            daemon=True,
        )
        self._thread.start()
        self._thread_ready.wait(timeout=5.0)

    def _delivery_loop(self) -> None:
        """Background thread: consume queue and deliver until the None sentinel."""
        self._thread_ready.set()

        while True:
            event = self._queue.get()
            try:
                if event is None:
                    break
                self._deliver(event)
            except Exception as e:
                # Never let one event kill the worker
                logger.error("Delivery loop failed unexpectedly", error=str(e))
            finally:
                # Always task_done() so flush() never hangs
                self._queue.task_done()

    def _deliver(self, event: Event) -> None:
        outcome = self._client.deliver(event)
        if outcome.status == DeliveryStatus.DELIVERED:
            self._delivered += 1
        elif outcome.status == DeliveryStatus.REJECTED:
            self._rejected += 1
        else:
            self._transport_failed += 1

    def submit(self, event: Event) -> bool:
        """Queue an event for delivery.

        Args:
            event: Accepted event

        Returns:
            True if queued, False if dropped (shut down or queue full)
        """
        if self._shutdown_event.is_set():
            logger.warning("Dispatcher closed, dropping event", severity=event.severity.wire_name)
            self._count_drop()
            return False

        if not self._thread.is_alive():
            logger.critical("Delivery thread died, dropping event")
            self._count_drop()
            return False

        try:
            self._queue.put(event, timeout=self._enqueue_timeout)
        except queue.Full:
            logger.error("Delivery queue full - event dropped", queue_maxsize=self._queue.maxsize)
            self._count_drop()
            return False
        return True

    def _count_drop(self) -> None:
        with self._metrics_lock:
            self._dropped += 1

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Snapshot of delivery health.

        Reads are approximately consistent; counters other than dropped are
        written only by the delivery thread.
        """
        with self._metrics_lock:
            dropped = self._dropped
        return {
            "delivered": self._delivered,
            "rejected": self._rejected,
            "transport_failed": self._transport_failed,
            "dropped": dropped,
            "queue_depth": self._queue.qsize(),
            "queue_maxsize": self._queue.maxsize,
        }

    def flush(self) -> None:
        """Block until every queued event has been handled."""
        if not self._shutdown_event.is_set():
            self._queue.join()

    def close(self) -> None:
        """Deliver what is queued, stop the thread, close the client.

        Order matters: the sentinel goes in only after shutdown is signalled,
        so no event can land behind it. Idempotent.
        """
        if self._closed:
            return
        self._closed = True
        self._shutdown_event.set()

        sentinel_sent = False
        try:
            self._queue.put(None, timeout=self._enqueue_timeout)
            sentinel_sent = True
        except queue.Full:
            logger.error("Failed to send shutdown sentinel - delivery thread may hang")

        if sentinel_sent:
            self._thread.join(timeout=self._enqueue_timeout)
            if self._thread.is_alive():
                logger.error("Delivery thread did not exit cleanly within timeout")

        logger.info("Delivery dispatcher closing", **self.health_metrics)
        self._client.close()
