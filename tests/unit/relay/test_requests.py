# tests/unit/relay/test_requests.py
"""Tests for peer request/reply payload validation."""

import pytest
from pydantic import ValidationError

from errorrelay.contracts.enums import Severity
from errorrelay.relay.requests import GetTotalRequest, LogEventRequest, SetMetadataRequest, TotalReply


class TestLogEventRequest:
    def test_parses_wire_payload(self) -> None:
        request = LogEventRequest.model_validate({"message": "boom", "severity": 3, "manual": True})

        assert request.message == "boom"
        assert request.severity is Severity.ERROR
        assert request.manual is True

    def test_manual_defaults_false_and_message_stringified(self) -> None:
        request = LogEventRequest.model_validate({"message": 12, "severity": "warning"})

        assert request.message == "12"
        assert request.manual is False

    @pytest.mark.parametrize(
        "payload",
        [
            {"severity": 3},
            {"message": None, "severity": 3},
            {"message": "boom", "severity": 9},
            {"message": "boom"},
        ],
    )
    def test_rejects_malformed(self, payload: dict) -> None:
        with pytest.raises(ValidationError):
            LogEventRequest.model_validate(payload)


class TestSetMetadataRequest:
    def test_accepts_mapping(self) -> None:
        assert SetMetadataRequest.model_validate({"metadata": {"k": "v"}}).metadata == {"k": "v"}

    @pytest.mark.parametrize("metadata", [None, {}, "x"])
    def test_rejects_missing_or_empty(self, metadata: object) -> None:
        with pytest.raises(ValidationError):
            SetMetadataRequest.model_validate({"metadata": metadata})


class TestTotals:
    def test_get_total_request(self) -> None:
        assert GetTotalRequest.model_validate({"severity": 4}).severity is Severity.CRITICAL

    def test_total_reply_rejects_negative(self) -> None:
        with pytest.raises(ValidationError):
            TotalReply.model_validate({"severity": 1, "total": -1})
