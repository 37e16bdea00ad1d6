"""
Per-room message index.

Messages are kept sorted by creation time. Messages sharing a timestamp stay
in the order they were inserted, so iteration is deterministic even when the
homeserver hands out identical ``origin_server_ts`` values.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator

from sortedcontainers import SortedKeyList

from .message import Message
from .ordering import TimelineEntry, by_creation


class MessageIndex:
    """Append-only, time-ordered message container."""

    def __init__(self) -> None:
        self._entries: SortedKeyList = SortedKeyList(key=by_creation)
        self._sequence = itertools.count()

    def insert(self, message: Message) -> None:
        """Insert a message in O(log n)."""
        self._entries.add(TimelineEntry(message.created, next(self._sequence), message))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Message]:
        """Messages oldest first. Each call starts a fresh traversal."""
        return (entry.message for entry in self._entries)

    def __reversed__(self) -> Iterator[Message]:
        return (entry.message for entry in reversed(self._entries))

    def for_each(self, visitor: Callable[[Message], None]) -> None:
        for message in self:
            visitor(message)

    def latest(self) -> Message | None:
        if not self._entries:
            return None
        return self._entries[-1].message

    def since(self, ts: int | float) -> Iterator[Message]:
        """Messages created at or after ``ts``, oldest first."""
        return (entry.message for entry in self._entries.irange_key(min_key=(ts, -1)))
