# tests/unit/contracts/test_enums.py
"""Tests for Severity parsing and the relay enums."""

import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

from errorrelay.contracts.enums import PeerRole, RequestKind, Severity
from errorrelay.contracts.errors import ConfigurationMisuseError, InvalidSeverityError


class TestSeverity:
    def test_ordering_matches_codes(self) -> None:
        assert Severity.DEBUG < Severity.INFO < Severity.WARNING < Severity.ERROR < Severity.CRITICAL
        assert [int(s) for s in Severity] == [0, 1, 2, 3, 4]

    def test_wire_names(self) -> None:
        assert [s.wire_name for s in Severity] == ["debug", "info", "warning", "error", "critical"]

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (Severity.ERROR, Severity.ERROR),
            (3, Severity.ERROR),
            ("error", Severity.ERROR),
            ("ERROR", Severity.ERROR),
            (" Warning ", Severity.WARNING),
            (0, Severity.DEBUG),
        ],
    )
    def test_parse_accepts_members_codes_and_names(self, value: object, expected: Severity) -> None:
        assert Severity.parse(value) is expected

    @pytest.mark.parametrize("value", [None, 5, -1, "fatal", "", True, 2.0, object()])
    def test_parse_rejects_unknown_values(self, value: object) -> None:
        with pytest.raises(InvalidSeverityError) as exc_info:
            Severity.parse(value)
        assert exc_info.value.value is value

    def test_invalid_severity_is_configuration_misuse_and_value_error(self) -> None:
        with pytest.raises(ConfigurationMisuseError):
            Severity.parse("nope")
        with pytest.raises(ValueError):
            Severity.parse("nope")

    @given(st.sampled_from(list(Severity)))
    def test_code_and_wire_name_are_bijective(self, severity: Severity) -> None:
        assert Severity.parse(int(severity)) is severity
        assert Severity.parse(severity.wire_name) is severity

    @pytest.mark.parametrize(
        ("levelno", "expected"),
        [
            (logging.DEBUG, Severity.DEBUG),
            (logging.INFO, Severity.INFO),
            (logging.WARNING, Severity.WARNING),
            (logging.ERROR, Severity.ERROR),
            (logging.CRITICAL, Severity.CRITICAL),
            (logging.ERROR + 5, Severity.ERROR),
            (logging.NOTSET, Severity.DEBUG),
            (100, Severity.CRITICAL),
        ],
    )
    def test_from_logging_level_rounds_down(self, levelno: int, expected: Severity) -> None:
        assert Severity.from_logging_level(levelno) is expected


class TestStringEnums:
    def test_role_values(self) -> None:
        assert PeerRole("authority") is PeerRole.AUTHORITY
        assert PeerRole("peer") is PeerRole.PEER

    def test_request_kinds_are_closed_set(self) -> None:
        assert {k.value for k in RequestKind} == {"set_metadata", "log_event", "get_total"}
