"""
User directory.

Users are created lazily the first time an event references them and are
indexed both by id and by display name. In Matrix the ids returned by the
API double as user names, so name lookups resolve through the id index.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from sortedcontainers import SortedDict, SortedKeyList

from ..events import require_content, require_sender, require_timestamp
from .ordering import by_display_name, prefix_bounds

logger = logging.getLogger(__name__)


class User:
    """A Matrix user as seen through room events."""

    __slots__ = ("user_id", "updated_ts", "nickname")

    def __init__(self, user_id: str):
        self.user_id = user_id
        self.updated_ts: int | float = 0
        self.nickname: str | None = None

    @property
    def display_name(self) -> str:
        """Nickname if one is set, otherwise the user id."""
        if self.nickname:
            return self.nickname
        return self.user_id

    def accepts(self, ts: int | float) -> bool:
        """Whether an update stamped ``ts`` is newer than what we hold."""
        return ts > self.updated_ts

    def update(self, event: dict[str, Any]) -> bool:
        """Apply a membership event's display name.

        Older or replayed events are ignored so they cannot revert a newer
        name.

        Returns:
            True if the event was applied
        """
        ts = require_timestamp(event)
        if not self.accepts(ts):
            return False

        displayname = require_content(event).get("displayname")
        self.nickname = displayname if isinstance(displayname, str) else None
        self.updated_ts = ts
        return True

    def __repr__(self) -> str:
        return f"User({self.user_id!r}, nickname={self.nickname!r})"


class UserDirectory:
    """Ordered indices over every user the client has seen."""

    def __init__(self) -> None:
        self._by_id: SortedDict[str, User] = SortedDict()
        self._by_name: SortedKeyList = SortedKeyList(key=by_display_name)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[User]:
        """Users in id order."""
        return iter(self._by_id.values())

    def get_user_by_id(self, user_id: str) -> User | None:
        if not isinstance(user_id, str):
            raise TypeError(f"user id must be a string, got {type(user_id).__name__}")
        return self._by_id.get(user_id)

    def get_user_by_name(self, name: str) -> User | None:
        return self.get_user_by_id(name)

    def get_user(self, user_id: str) -> User:
        """Return the user for ``user_id``, creating and indexing it if new."""
        user = self.get_user_by_id(user_id)
        if user is not None:
            return user

        user = User(user_id)
        self._by_id[user_id] = user
        self._by_name.add(user)
        logger.debug(f"New user: {user_id}")
        return user

    def update(self, event: dict[str, Any]) -> User:
        """Apply an ``m.room.member`` event to the user it describes.

        The subject is the event's ``state_key``; events without one fall
        back to the sender.
        """
        subject = event.get("state_key") or require_sender(event)
        user = self.get_user(subject)

        # The name index is keyed on display name, so re-key around the update
        if user.accepts(require_timestamp(event)):
            self._by_name.remove(user)
            try:
                user.update(event)
            finally:
                self._by_name.add(user)

        return user

    def by_name(self) -> Iterator[User]:
        """Users in display-name order."""
        return iter(self._by_name)

    def search_by_name(self, prefix: str) -> list[User]:
        """Users whose display name starts with ``prefix``, case-insensitively."""
        low, high = prefix_bounds(prefix)
        return list(self._by_name.irange_key(low, high))
