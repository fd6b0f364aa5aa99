"""The relay itself: pipeline components, transport seams and routers.

Typical single-process wiring:

    from errorrelay.core.config import load_settings
    from errorrelay.relay import LoggingLogStream, LoopbackHub, RelayContext, create_router

    settings = load_settings(Path("settings.yaml"))
    hub = LoopbackHub()
    router = create_router(
        settings.role,
        RelayContext.from_settings(settings),
        hub.authority_endpoint(),
        LoggingLogStream(),
    )
    router.setup()
"""

from errorrelay.relay.context import RelayContext
from errorrelay.relay.counters import CounterRegistry
from errorrelay.relay.dedup import DeduplicationStore, generalize_message
from errorrelay.relay.delivery import MAX_DELIVERY_ATTEMPTS, DeliveryClient
from errorrelay.relay.dispatcher import DeliveryDispatcher
from errorrelay.relay.log_stream import LoggingLogStream, LogStream
from errorrelay.relay.normalizer import EventNormalizer
from errorrelay.relay.payload import build_payload
from errorrelay.relay.router import AuthorityRouter, PeerRouter, Router, create_router
from errorrelay.relay.transport import AuthorityTransport, LoopbackHub, PeerTransport

__all__ = [
    "MAX_DELIVERY_ATTEMPTS",
    "AuthorityRouter",
    "AuthorityTransport",
    "CounterRegistry",
    "DeduplicationStore",
    "DeliveryClient",
    "DeliveryDispatcher",
    "EventNormalizer",
    "LogStream",
    "LoggingLogStream",
    "LoopbackHub",
    "PeerRouter",
    "PeerTransport",
    "RelayContext",
    "Router",
    "build_payload",
    "create_router",
    "generalize_message",
]
