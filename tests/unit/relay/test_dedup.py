# tests/unit/relay/test_dedup.py
"""Tests for DeduplicationStore and message generalization."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from errorrelay.relay.dedup import PLAYER_PLACEHOLDER, DeduplicationStore, generalize_message
from tests.conftest import make_session

player_names = st.text(alphabet="abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_", min_size=1, max_size=20)


class TestGeneralizeMessage:
    def test_replaces_player_segment(self) -> None:
        assert generalize_message("Players.Bob.Tool broke") == "Players.<PLAYER>.Tool broke"

    def test_replaces_every_occurrence(self) -> None:
        message = "Players.Ann.Gun hit Players.Bob.Head"
        assert generalize_message(message) == "Players.<PLAYER>.Gun hit Players.<PLAYER>.Head"

    def test_leaves_other_text_alone(self) -> None:
        assert generalize_message("Workspace.Part fell") == "Workspace.Part fell"

    def test_custom_pattern(self) -> None:
        assert generalize_message("Users/alice/x", r"Users/[a-z]+/") == f"{PLAYER_PLACEHOLDER}x"

    @given(a=player_names, b=player_names)
    def test_messages_differing_only_by_player_collapse(self, a: str, b: str) -> None:
        assert generalize_message(f"Players.{a}.Tool broke") == generalize_message(f"Players.{b}.Tool broke")

    @given(name=player_names)
    def test_idempotent(self, name: str) -> None:
        once = generalize_message(f"Players.{name}.Script error")
        assert generalize_message(once) == once


class TestDeduplicationStore:
    def test_accepts_everything_when_not_ignoring(self) -> None:
        store = DeduplicationStore(make_session())
        store.record("boom")

        assert store.should_accept("boom")

    def test_rejects_recorded_message_when_ignoring(self) -> None:
        store = DeduplicationStore(make_session(ignore_duplicates=True))
        assert store.should_accept("boom")

        store.record("boom")

        assert not store.should_accept("boom")
        assert store.should_accept("other")

    def test_should_accept_never_mutates(self) -> None:
        store = DeduplicationStore(make_session(ignore_duplicates=True))

        store.should_accept("boom")
        store.should_accept("boom")

        assert len(store) == 0
        assert "boom" not in store

    def test_generalize_only_when_enabled(self) -> None:
        assert DeduplicationStore(make_session()).generalize("Players.Bob.X") == "Players.Bob.X"
        store = DeduplicationStore(make_session(generalize_client_errors=True))
        assert store.generalize("Players.Bob.X") == "Players.<PLAYER>.X"

    def test_reads_flags_from_session_on_every_call(self) -> None:
        session = make_session()
        store = DeduplicationStore(session)
        store.record("Players.<PLAYER>.x")
        assert store.should_accept("Players.<PLAYER>.x")

        session.ignore_duplicates = True
        session.generalize_client_errors = True
        session.player_pattern = r"Players\.[a-z]+\."

        assert not store.should_accept("Players.<PLAYER>.x")
        assert store.generalize("Players.bob.x") == "Players.<PLAYER>.x"
        assert store.generalize("Players.Bob.x") == "Players.Bob.x"

    def test_history_keeps_order_and_repeats(self) -> None:
        store = DeduplicationStore(make_session())
        for message in ["a", "b", "a"]:
            store.record(message)

        assert store.history == ("a", "b", "a")
        assert len(store) == 3
        assert "b" in store

    @given(messages=st.lists(st.text(min_size=1, max_size=10), max_size=30))
    def test_accepted_history_has_no_duplicates_when_ignoring(self, messages: list[str]) -> None:
        store = DeduplicationStore(make_session(ignore_duplicates=True))
        for message in messages:
            if store.should_accept(message):
                store.record(message)

        assert len(store.history) == len(set(store.history))
        assert set(store.history) == set(messages)

    @pytest.mark.parametrize(
        ("pattern", "message", "expected"),
        [
            (r"Players\.[A-Za-z0-9_]+\.", "Players.x_1.Y", "Players.<PLAYER>.Y"),
            (r"Users/[a-z]+/", "Users/bob/file", "Players.<PLAYER>.file"),
        ],
    )
    def test_pattern_is_configurable(self, pattern: str, message: str, expected: str) -> None:
        store = DeduplicationStore(make_session(generalize_client_errors=True, player_pattern=pattern))
        assert store.generalize(message) == expected
