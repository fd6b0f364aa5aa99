# src/errorrelay/relay/transport.py
"""Cross-peer transport seam.

Real peer-to-authority messaging belongs to the host (sockets, a game
engine's remote events, a message bus). The relay only needs reliable,
per-pair ordered delivery of (kind, payload) tuples, described by the two
protocols below. LoopbackHub is an in-process implementation used for
single-process deployments and tests.
"""

import copy
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import structlog

from errorrelay.contracts.enums import ReplyKind, RequestKind

logger = structlog.get_logger(__name__)

RequestHandler = Callable[[str, RequestKind, dict[str, Any]], None]
ReplyHandler = Callable[[ReplyKind, dict[str, Any]], None]


@runtime_checkable
class AuthorityTransport(Protocol):
    """Authority side of the transport.

    Error handling:
        - Handlers registered with on_request() must not raise; a transport
          should still isolate the sender from handler failures
    """

    def on_request(self, handler: RequestHandler) -> None:
        """Register the handler for requests from any peer."""
        ...

    def reply(self, peer_id: str, kind: ReplyKind, payload: dict[str, Any]) -> None:
        """Send a reply to one peer."""
        ...


@runtime_checkable
class PeerTransport(Protocol):
    """Peer side of the transport."""

    @property
    def peer_id(self) -> str:
        """Identity the authority uses to address replies to this peer."""
        ...

    def on_reply(self, handler: ReplyHandler) -> None:
        """Register the handler for replies from the authority."""
        ...

    def send(self, kind: RequestKind, payload: dict[str, Any]) -> None:
        """Send a request to the authority."""
        ...


class LoopbackHub:
    """In-process transport connecting one authority with many peers.

    Delivery is synchronous and ordered. Payloads are deep-copied at the
    boundary so neither side can mutate what the other holds. A request sent
    before the authority registered its handler is dropped with a warning,
    as it would be on a real transport with no listener.

    Example:
        hub = LoopbackHub()
        authority = create_router(PeerRole.AUTHORITY, ctx_a, hub.authority_endpoint())
        peer = create_router(PeerRole.PEER, ctx_p, hub.peer_endpoint("player-1"))
    """

    def __init__(self) -> None:
        self._request_handler: RequestHandler | None = None
        self._reply_handlers: dict[str, ReplyHandler] = {}
        self._authority = _LoopbackAuthorityEndpoint(self)
        self._peers: dict[str, _LoopbackPeerEndpoint] = {}

    def authority_endpoint(self) -> "_LoopbackAuthorityEndpoint":
        return self._authority

    def peer_endpoint(self, peer_id: str) -> "_LoopbackPeerEndpoint":
        """Return the endpoint for peer_id, creating it on first use."""
        if not peer_id:
            raise ValueError("peer_id must be a non-empty string")
        if peer_id not in self._peers:
            self._peers[peer_id] = _LoopbackPeerEndpoint(self, peer_id)
        return self._peers[peer_id]

    def _route_request(self, peer_id: str, kind: RequestKind, payload: dict[str, Any]) -> None:
        handler = self._request_handler
        if handler is None:
            logger.warning("No authority listening, request dropped", peer_id=peer_id, kind=str(kind))
            return
        try:
            handler(peer_id, kind, copy.deepcopy(payload))
        except Exception as e:
            logger.error("Authority request handler failed", peer_id=peer_id, kind=str(kind), error=str(e))

    def _route_reply(self, peer_id: str, kind: ReplyKind, payload: dict[str, Any]) -> None:
        handler = self._reply_handlers.get(peer_id)
        if handler is None:
            logger.warning("Peer not listening, reply dropped", peer_id=peer_id, kind=str(kind))
            return
        try:
            handler(kind, copy.deepcopy(payload))
        except Exception as e:
            logger.error("Peer reply handler failed", peer_id=peer_id, kind=str(kind), error=str(e))


class _LoopbackAuthorityEndpoint:
    def __init__(self, hub: LoopbackHub) -> None:
        self._hub = hub

    def on_request(self, handler: RequestHandler) -> None:
        self._hub._request_handler = handler

    def reply(self, peer_id: str, kind: ReplyKind, payload: dict[str, Any]) -> None:
        self._hub._route_reply(peer_id, kind, payload)


class _LoopbackPeerEndpoint:
    def __init__(self, hub: LoopbackHub, peer_id: str) -> None:
        self._hub = hub
        self._peer_id = peer_id

    @property
    def peer_id(self) -> str:
        return self._peer_id

    def on_reply(self, handler: ReplyHandler) -> None:
        self._hub._reply_handlers[self._peer_id] = handler

    def send(self, kind: RequestKind, payload: dict[str, Any]) -> None:
        self._hub._route_request(self._peer_id, kind, payload)
