# src/errorrelay/relay/router.py
"""Routers: the per-role dispatchers of the relay.

Two roles, chosen once at startup by create_router():

- AuthorityRouter: one per session. Runs the pipeline
  (normalize -> dedup -> count -> deliver), owns the counters and answers
  peer requests.
- PeerRouter: zero or more. Never runs the pipeline; forwards log output,
  explicit log calls, metadata and counter queries to the authority.

Both expose the same developer-facing API (configure, log_*, get_total), so
calling code does not need to know which role it runs in.

Disable rule:
    When the process runs in a diagnostic host and the session says to
    ignore that host, setup() installs no listeners and every explicit log
    call is dropped with a warning.
"""

from __future__ import annotations

import dataclasses
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, ClassVar

import structlog
from pydantic import ValidationError

from errorrelay.contracts.enums import PeerRole, PipelineResult, QueryStatus, ReplyKind, RequestKind, Severity
from errorrelay.contracts.errors import ConfigurationMisuseError, RouterSetupError
from errorrelay.contracts.events import TotalQueryResult
from errorrelay.core.config import validate_metadata
from errorrelay.relay.context import RelayContext
from errorrelay.relay.delivery import DeliveryClient
from errorrelay.relay.dispatcher import DeliveryDispatcher
from errorrelay.relay.log_stream import LogStream
from errorrelay.relay.requests import GetTotalRequest, LogEventRequest, SetMetadataRequest, TotalReply
from errorrelay.relay.transport import AuthorityTransport, PeerTransport

logger = structlog.get_logger(__name__)

# Upper bound a peer waits for the authority to answer a counter query.
DEFAULT_QUERY_TIMEOUT = 5.0


class Router(ABC):
    """Shared developer-facing API of both roles.

    Lifecycle:
        1. Construction: collaborators wired, nothing listening yet
        2. setup(): subscribe to transport and log stream (at most once)
        3. Operation: configure(), log_*(), get_total()
        4. close(): unsubscribe and release resources
    """

    role: ClassVar[PeerRole]

    def __init__(self, context: RelayContext, log_stream: LogStream | None = None) -> None:
        self._context = context
        self._log_stream = log_stream
        self._initialised = False
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def context(self) -> RelayContext:
        return self._context

    @property
    def disabled(self) -> bool:
        """True when the relay is switched off for a diagnostic host."""
        return self._context.config.disabled

    @property
    def initialised(self) -> bool:
        return self._initialised

    def setup(self) -> None:
        """Connect to the transport and, unless in manual mode, the log stream.

        Runs at most once per router; later calls log a warning and return.
        """
        if self._initialised:
            logger.warning("Relay has already been initialised, setup ignored", role=str(self.role))
            return
        self._initialised = True

        if self.disabled:
            logger.warning("Relay is disabled in diagnostic host", role=str(self.role))
            return

        self._connect_transport()

        if self._context.config.manual_mode:
            logger.debug("Manual mode - not listening to log stream", role=str(self.role))
        elif self._log_stream is not None:
            self._unsubscribe = self._log_stream.subscribe(self._on_log_output)

        logger.info("Relay initialised", role=str(self.role), manual_mode=self._context.config.manual_mode)

    def configure(self, metadata: Any) -> None:
        """Set metadata for the next accepted manual event.

        A reserved "environment" key overrides the event environment.

        Raises:
            ConfigurationMisuseError: If metadata is missing, empty or not a
                string-keyed mapping
        """
        self._apply_metadata(validate_metadata(metadata))

    def log(self, severity: Severity | int | str, message: Any) -> None:
        """Explicit developer log call.

        Raises:
            InvalidSeverityError: If severity does not name a level
            ConfigurationMisuseError: If message is None
        """
        level = Severity.parse(severity)
        if message is None:
            raise ConfigurationMisuseError("log", "message is required")
        if self.disabled:
            logger.warning("Relay is disabled in diagnostic host, log call dropped", severity=level.wire_name)
            return
        self._submit_manual(level, message)

    def log_critical(self, message: Any) -> None:
        self.log(Severity.CRITICAL, message)

    def log_error(self, message: Any) -> None:
        self.log(Severity.ERROR, message)

    def log_warning(self, message: Any) -> None:
        self.log(Severity.WARNING, message)

    def log_info(self, message: Any) -> None:
        self.log(Severity.INFO, message)

    def log_debug(self, message: Any) -> None:
        self.log(Severity.DEBUG, message)

    @abstractmethod
    def get_total(self, severity: Severity | int | str, timeout: float = DEFAULT_QUERY_TIMEOUT) -> TotalQueryResult:
        """Total accepted events of a severity, as known to the authority."""

    def flush(self) -> None:
        """Wait for outstanding deliveries. No-op where nothing is delivered."""

    def close(self) -> None:
        """Stop listening to the log stream. Idempotent."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @abstractmethod
    def _connect_transport(self) -> None: ...

    @abstractmethod
    def _on_log_output(self, message: str, severity: Severity) -> None: ...

    @abstractmethod
    def _submit_manual(self, severity: Severity, message: Any) -> None: ...

    @abstractmethod
    def _apply_metadata(self, metadata: dict[str, Any]) -> None: ...


class AuthorityRouter(Router):
    """Authority role: runs the pipeline and serves peers.

    Thread Safety:
        process() may be called from any thread. The accept step runs under
        the context lock; delivery happens on the dispatcher thread.
    """

    role = PeerRole.AUTHORITY

    def __init__(
        self,
        context: RelayContext,
        transport: AuthorityTransport | None = None,
        log_stream: LogStream | None = None,
        *,
        dispatcher: DeliveryDispatcher | None = None,
    ) -> None:
        """Initialize authority router.

        Args:
            context: Process relay state
            transport: Where peer requests arrive; None for a standalone authority
            log_stream: Host log output source
            dispatcher: Delivery dispatcher; built from the session when omitted
        """
        super().__init__(context, log_stream)
        self._transport = transport
        self._normalizer = context.normalizer()
        config = context.config
        self._dispatcher = dispatcher or DeliveryDispatcher(
            DeliveryClient(config),
            queue_size=config.queue_size,
            enqueue_timeout=config.enqueue_timeout_seconds,
        )

    @property
    def dispatcher(self) -> DeliveryDispatcher:
        return self._dispatcher

    def process(self, manual: bool, severity: Severity, message: Any) -> PipelineResult:
        """Run one event through normalize -> dedup -> count -> deliver.

        The pending metadata slot is read and, for an accepted manual event,
        cleared inside the same critical section as the dedup check.
        Clearing happens before delivery, so a failed send never leaves the
        metadata behind for the next event.

        Args:
            manual: True for explicit developer log calls
            severity: Event severity
            message: Raw message

        Returns:
            ACCEPTED, DUPLICATE, or DISABLED
        """
        if self.disabled:
            logger.debug("Relay disabled, event dropped", severity=severity.wire_name)
            return PipelineResult.DISABLED

        context = self._context
        # Nothing under the lock may log: a host thread can hold a logging
        # handler lock while it waits here.
        with context.lock:
            pending = context.config.pending_metadata if manual else None
            event = self._normalizer.normalize(manual, severity, message, pending)

            key = context.dedup.generalize(event.message)
            accepted = context.dedup.should_accept(key)
            if accepted:
                event = dataclasses.replace(event, message=key)
                context.dedup.record(key)
                context.counters.increment(event.severity)
                if pending is not None:
                    context.config.take_pending_metadata()

        if not accepted:
            logger.debug("Duplicate message dropped", message=key)
            return PipelineResult.DUPLICATE

        self._dispatcher.submit(event)
        return PipelineResult.ACCEPTED

    def handle_request(self, peer_id: str, kind: RequestKind | str, payload: dict[str, Any]) -> None:
        """Serve one request from a peer. Never raises.

        Malformed requests are logged and dropped.
        """
        try:
            request_kind = RequestKind(kind)
        except ValueError:
            logger.warning("Unknown request kind from peer, dropped", peer_id=peer_id, kind=str(kind))
            return

        try:
            match request_kind:
                case RequestKind.SET_METADATA:
                    metadata_request = SetMetadataRequest.model_validate(payload)
                    self._context.set_pending_metadata(metadata_request.metadata)

                case RequestKind.LOG_EVENT:
                    if self.disabled:
                        logger.debug("Relay disabled, forwarded event dropped", peer_id=peer_id)
                        return
                    log_request = LogEventRequest.model_validate(payload)
                    self.process(log_request.manual, log_request.severity, log_request.message)

                case RequestKind.GET_TOTAL:
                    total_request = GetTotalRequest.model_validate(payload)
                    self._reply_total(peer_id, total_request.severity)
        except (ValidationError, ConfigurationMisuseError) as e:
            logger.warning(
                "Malformed request from peer, dropped",
                peer_id=peer_id,
                kind=str(request_kind),
                error=str(e),
            )

    def _reply_total(self, peer_id: str, severity: Severity) -> None:
        if self._transport is None:
            return
        self._transport.reply(
            peer_id,
            ReplyKind.TOTAL,
            {"severity": int(severity), "total": self._context.counters.get(severity)},
        )

    def get_total(self, severity: Severity | int | str, timeout: float = DEFAULT_QUERY_TIMEOUT) -> TotalQueryResult:
        """Direct read of the authoritative counter. timeout is unused."""
        level = Severity.parse(severity)
        return TotalQueryResult(
            severity=level,
            status=QueryStatus.RESOLVED,
            total=self._context.counters.get(level),
        )

    def flush(self) -> None:
        self._dispatcher.flush()

    def close(self) -> None:
        """Stop listening, deliver what is queued and stop the dispatcher."""
        super().close()
        self._dispatcher.close()

    def _connect_transport(self) -> None:
        if self._transport is not None:
            self._transport.on_request(self.handle_request)

    def _on_log_output(self, message: str, severity: Severity) -> None:
        self.process(False, severity, message)

    def _submit_manual(self, severity: Severity, message: Any) -> None:
        self.process(True, severity, message)

    def _apply_metadata(self, metadata: dict[str, Any]) -> None:
        self._context.set_pending_metadata(metadata)


class PeerRouter(Router):
    """Peer role: forwards everything to the authority.

    Counter queries wait for the authority's reply for at most the given
    timeout. Replies also refresh an informational cache that is overwritten
    wholesale on every reply and may go stale.
    """

    role = PeerRole.PEER

    def __init__(
        self,
        context: RelayContext,
        transport: PeerTransport,
        log_stream: LogStream | None = None,
    ) -> None:
        super().__init__(context, log_stream)
        self._transport = transport
        self._cache: dict[Severity, int] = {}
        self._waiters: defaultdict[Severity, list[Future[int]]] = defaultdict(list)
        self._waiters_lock = threading.Lock()

    def cached_total(self, severity: Severity | int | str) -> int | None:
        """Last total the authority reported for severity, or None."""
        level = Severity.parse(severity)
        with self._waiters_lock:
            return self._cache.get(level)

    def get_total(self, severity: Severity | int | str, timeout: float = DEFAULT_QUERY_TIMEOUT) -> TotalQueryResult:
        """Ask the authority for a total and wait at most timeout seconds.

        Returns:
            RESOLVED with the authority's value; TIMED_OUT or FAILED with the
            last cached value (or None) otherwise
        """
        level = Severity.parse(severity)
        future: Future[int] = Future()
        with self._waiters_lock:
            self._waiters[level].append(future)

        try:
            self._transport.send(RequestKind.GET_TOTAL, {"severity": int(level)})
        except Exception as e:
            self._discard_waiter(level, future)
            logger.warning("Counter query could not be sent", severity=level.wire_name, error=str(e))
            return TotalQueryResult(severity=level, status=QueryStatus.FAILED, total=self.cached_total(level))

        try:
            total = future.result(timeout=timeout)
        except TimeoutError:
            self._discard_waiter(level, future)
            logger.warning("Counter query timed out", severity=level.wire_name, timeout=timeout)
            return TotalQueryResult(severity=level, status=QueryStatus.TIMED_OUT, total=self.cached_total(level))

        return TotalQueryResult(severity=level, status=QueryStatus.RESOLVED, total=total)

    def handle_reply(self, kind: ReplyKind | str, payload: dict[str, Any]) -> None:
        """Apply a reply from the authority. Never raises."""
        try:
            ReplyKind(kind)
            reply = TotalReply.model_validate(payload)
        except (ValueError, ValidationError) as e:
            logger.warning("Malformed reply from authority, dropped", kind=str(kind), error=str(e))
            return

        with self._waiters_lock:
            self._cache[reply.severity] = reply.total
            waiters = self._waiters.pop(reply.severity, [])

        for future in waiters:
            if not future.done():
                future.set_result(reply.total)

    def _discard_waiter(self, severity: Severity, future: Future[int]) -> None:
        with self._waiters_lock:
            waiters = self._waiters.get(severity)
            if waiters and future in waiters:
                waiters.remove(future)

    def _connect_transport(self) -> None:
        self._transport.on_reply(self.handle_reply)

    def _on_log_output(self, message: str, severity: Severity) -> None:
        self._forward(message, severity, manual=False)

    def _submit_manual(self, severity: Severity, message: Any) -> None:
        self._forward(str(message), severity, manual=True)

    def _forward(self, message: str, severity: Severity, *, manual: bool) -> None:
        self._transport.send(
            RequestKind.LOG_EVENT,
            {"message": message, "severity": int(severity), "manual": manual},
        )

    def _apply_metadata(self, metadata: dict[str, Any]) -> None:
        self._transport.send(RequestKind.SET_METADATA, {"metadata": metadata})


def create_router(
    role: PeerRole | str,
    context: RelayContext,
    transport: AuthorityTransport | PeerTransport | None = None,
    log_stream: LogStream | None = None,
    **kwargs: Any,
) -> Router:
    """Build the router variant for a role. Called once at startup.

    Args:
        role: AUTHORITY or PEER
        context: Process relay state
        transport: Transport endpoint matching the role (optional for a
            standalone authority, required for a peer)
        log_stream: Host log output source
        **kwargs: Passed through to the router class

    Returns:
        AuthorityRouter or PeerRouter (not yet set up)

    Raises:
        RouterSetupError: If the transport does not fit the role
    """
    peer_role = PeerRole(role)
    if peer_role == PeerRole.AUTHORITY:
        if transport is not None and not isinstance(transport, AuthorityTransport):
            raise RouterSetupError(f"Authority router needs an AuthorityTransport, got {type(transport).__name__}")
        return AuthorityRouter(context, transport, log_stream, **kwargs)

    if transport is None or not isinstance(transport, PeerTransport):
        raise RouterSetupError(f"Peer router needs a PeerTransport, got {type(transport).__name__}")
    return PeerRouter(context, transport, log_stream, **kwargs)
