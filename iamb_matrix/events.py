"""
Event kinds understood by the client.

Homeserver event types are modelled as string enums so the reducers can
dispatch through handler tables. ``parse`` returns None for types the client
does not know, which callers log and skip.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from .exceptions import MalformedEventError


class RoomEventType(str, Enum):
    """Room state and timeline event types."""

    NAME = "m.room.name"
    TOPIC = "m.room.topic"
    CANONICAL_ALIAS = "m.room.canonical_alias"
    ALIASES = "m.room.aliases"
    MEMBER = "m.room.member"
    MESSAGE = "m.room.message"
    AVATAR = "m.room.avatar"
    RELATED_GROUPS = "m.room.related_groups"
    CREATE = "m.room.create"
    JOIN_RULES = "m.room.join_rules"
    HISTORY_VISIBILITY = "m.room.history_visibility"
    POWER_LEVELS = "m.room.power_levels"
    GUEST_ACCESS = "m.room.guest_access"
    ENCRYPTION = "m.room.encryption"
    ENCRYPTED = "m.room.encrypted"
    THIRD_PARTY_INVITE = "m.room.third_party_invite"
    PREVIEW_URLS = "org.matrix.room.preview_urls"

    @classmethod
    def parse(cls, value: str) -> RoomEventType | None:
        try:
            return cls(value)
        except ValueError:
            return None


class EphemeralEventType(str, Enum):
    """Transient room signalling."""

    RECEIPT = "m.receipt"
    TYPING = "m.typing"

    @classmethod
    def parse(cls, value: str) -> EphemeralEventType | None:
        try:
            return cls(value)
        except ValueError:
            return None


class AccountDataType(str, Enum):
    """Account-scoped metadata events."""

    DIRECT = "m.direct"
    PUSH_RULES = "m.push_rules"

    @classmethod
    def parse(cls, value: str) -> AccountDataType | None:
        try:
            return cls(value)
        except ValueError:
            return None


class ClientEventType(Enum):
    """Notifications the client publishes to its observers."""

    CONNECTED = "connected"
    ROOM = "room"
    MESSAGE = "message"
    ERROR = "error"


def event_type_of(event: Any) -> str:
    """Return an event's ``type``, failing loudly when it is absent."""
    if not isinstance(event, dict):
        raise MalformedEventError("event", None)
    event_type = event.get("type")
    if not isinstance(event_type, str):
        raise MalformedEventError("type", event)
    return event_type


def require_content(event: dict[str, Any]) -> dict[str, Any]:
    content = event.get("content")
    if not isinstance(content, dict):
        raise MalformedEventError("content", event)
    return content


def require_sender(event: dict[str, Any]) -> str:
    sender = event.get("sender")
    if not isinstance(sender, str):
        raise MalformedEventError("sender", event)
    return sender


def require_timestamp(event: dict[str, Any]) -> int:
    ts = event.get("origin_server_ts")
    # bool is an int subclass, and never a valid timestamp
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        raise MalformedEventError("origin_server_ts", event)
    return ts
