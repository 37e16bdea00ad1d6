"""Tests for the per-room message index."""

from __future__ import annotations

import dataclasses

import pytest

from iamb_matrix.store import Message, MessageIndex, User
from tests.helpers import text_event


def make_message(body: str, ts: int) -> Message:
    return Message.from_event("!r1", User("@a:x"), text_event(body, ts=ts))


class TestMessageIndex:
    """Tests for ordering and traversal."""

    def test_empty(self) -> None:
        index = MessageIndex()

        assert len(index) == 0
        assert list(index) == []
        assert index.latest() is None

    def test_sorted_by_creation(self) -> None:
        index = MessageIndex()
        for body, ts in [("c", 300), ("a", 100), ("b", 200)]:
            index.insert(make_message(body, ts))

        assert [m.text for m in index] == ["a", "b", "c"]
        assert index.latest().text == "c"

    def test_equal_timestamps_keep_insertion_order(self) -> None:
        index = MessageIndex()
        for body in ["first", "second", "third"]:
            index.insert(make_message(body, 500))
        index.insert(make_message("earlier", 100))

        assert [m.text for m in index] == ["earlier", "first", "second", "third"]

    def test_duplicate_insert_is_stable(self) -> None:
        index = MessageIndex()
        message = make_message("dup", 100)
        index.insert(message)
        index.insert(make_message("other", 100))
        index.insert(message)

        assert [m.text for m in index] == ["dup", "other", "dup"]

    def test_traversal_is_restartable(self) -> None:
        index = MessageIndex()
        index.insert(make_message("a", 1))
        index.insert(make_message("b", 2))

        assert [m.text for m in index] == [m.text for m in index]

    def test_for_each_visits_in_order(self) -> None:
        index = MessageIndex()
        index.insert(make_message("b", 2))
        index.insert(make_message("a", 1))
        seen: list[str] = []

        index.for_each(lambda m: seen.append(m.text))

        assert seen == ["a", "b"]

    def test_reversed_and_since(self) -> None:
        index = MessageIndex()
        for body, ts in [("a", 100), ("b", 200), ("c", 200), ("d", 300)]:
            index.insert(make_message(body, ts))

        assert [m.text for m in reversed(index)] == ["d", "c", "b", "a"]
        assert [m.text for m in index.since(200)] == ["b", "c", "d"]
        assert list(index.since(1000)) == []


class TestMessage:
    """Tests for message construction."""

    def test_fields_from_event(self) -> None:
        speaker = User("@a:x")
        event = text_event("hello", ts=42, event_id="$e")

        message = Message.from_event("!r1", speaker, event)

        assert message.text == "hello"
        assert message.body == "hello"
        assert message.msgtype == "m.text"
        assert message.created == 42
        assert message.event_id == "$e"
        assert message.sender == "@a:x"
        assert message.speaker is speaker
        assert message.event is event

    def test_immutable(self) -> None:
        message = make_message("x", 1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            message.body = "changed"  # type: ignore[misc]
