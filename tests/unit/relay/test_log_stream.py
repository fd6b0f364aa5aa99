# tests/unit/relay/test_log_stream.py
"""Tests for LoggingLogStream, the stdlib logging adapter."""

import logging
import threading
from collections.abc import Iterator

import pytest

from errorrelay.contracts.enums import Severity
from errorrelay.relay.dispatcher import DELIVERY_THREAD_NAME
from errorrelay.relay.log_stream import LoggingLogStream, LogStream

HOST_LOGGER = "host.game"


@pytest.fixture
def received() -> list[tuple[str, Severity]]:
    return []


@pytest.fixture
def stream() -> Iterator[LoggingLogStream]:
    host = logging.getLogger(HOST_LOGGER)
    level = host.level
    host.setLevel(logging.DEBUG)
    yield LoggingLogStream(HOST_LOGGER)
    host.setLevel(level)


class TestLoggingLogStream:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(LoggingLogStream(), LogStream)

    def test_forwards_records_with_mapped_severity(
        self,
        stream: LoggingLogStream,
        received: list[tuple[str, Severity]],
    ) -> None:
        unsubscribe = stream.subscribe(lambda message, severity: received.append((message, severity)))
        host = logging.getLogger(HOST_LOGGER)

        host.error("Players.Bob.Tool broke")
        host.warning("low ammo %d", 3)
        host.debug("tick")
        unsubscribe()

        assert received == [
            ("Players.Bob.Tool broke", Severity.ERROR),
            ("low ammo 3", Severity.WARNING),
            ("tick", Severity.DEBUG),
        ]

    def test_unsubscribe_stops_forwarding(
        self,
        stream: LoggingLogStream,
        received: list[tuple[str, Severity]],
    ) -> None:
        unsubscribe = stream.subscribe(lambda message, severity: received.append((message, severity)))
        unsubscribe()

        logging.getLogger(HOST_LOGGER).error("after")

        assert received == []

    def test_level_filters_records(self, received: list[tuple[str, Severity]]) -> None:
        host = logging.getLogger(HOST_LOGGER)
        host.setLevel(logging.DEBUG)
        stream = LoggingLogStream(HOST_LOGGER, level=logging.WARNING)
        unsubscribe = stream.subscribe(lambda message, severity: received.append((message, severity)))

        host.info("ignored")
        host.critical("kept")
        unsubscribe()
        host.setLevel(logging.NOTSET)

        assert received == [("kept", Severity.CRITICAL)]

    @pytest.mark.parametrize("logger_name", ["errorrelay", "errorrelay.relay.delivery", "httpx", "httpcore.http11"])
    def test_relay_and_http_loggers_ignored(self, logger_name: str, received: list[tuple[str, Severity]]) -> None:
        stream = LoggingLogStream()
        unsubscribe = stream.subscribe(lambda message, severity: received.append((message, severity)))

        logging.getLogger(logger_name).error("internal")
        unsubscribe()

        assert received == []

    def test_delivery_thread_records_ignored(
        self,
        stream: LoggingLogStream,
        received: list[tuple[str, Severity]],
    ) -> None:
        unsubscribe = stream.subscribe(lambda message, severity: received.append((message, severity)))

        worker = threading.Thread(
            target=lambda: logging.getLogger(HOST_LOGGER).error("from delivery"),
            name=DELIVERY_THREAD_NAME,
        )
        worker.start()
        worker.join()
        unsubscribe()

        assert received == []

    def test_reentrant_records_ignored(
        self,
        stream: LoggingLogStream,
        received: list[tuple[str, Severity]],
    ) -> None:
        host = logging.getLogger(HOST_LOGGER)

        def callback(message: str, severity: Severity) -> None:
            received.append((message, severity))
            host.error("logged while handling")

        unsubscribe = stream.subscribe(callback)
        host.error("outer")
        unsubscribe()

        assert received == [("outer", Severity.ERROR)]

    def test_relay_records_rejected_without_taking_handler_lock(
        self,
        received: list[tuple[str, Severity]],
    ) -> None:
        """A relay record must not wait on a host thread inside the handler."""
        root = logging.getLogger()
        before = list(root.handlers)
        unsubscribe = LoggingLogStream().subscribe(lambda message, severity: received.append((message, severity)))
        (handler,) = [h for h in root.handlers if h not in before]
        finished = threading.Event()

        def log_from_relay() -> None:
            logging.getLogger("errorrelay.relay.router").error("internal")
            finished.set()

        handler.acquire()
        try:
            worker = threading.Thread(target=log_from_relay, daemon=True)
            worker.start()
            assert finished.wait(timeout=5)
        finally:
            handler.release()
            unsubscribe()

        assert received == []
