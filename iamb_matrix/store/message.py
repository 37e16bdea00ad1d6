"""
Room messages.

A message wraps an ``m.room.message`` event, which looks like:

    {
        "origin_server_ts": 1540570982783,
        "sender": "@username:example.com",
        "event_id": "$12345678912345678901:example.com",
        "unsigned": {"age": 12345678},
        "content": {
            "body": "Hello there!",
            "msgtype": "m.text",
            "formatted_body": "Hello there!",
            "format": "org.matrix.custom.html"
        },
        "type": "m.room.message"
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..events import require_content, require_sender, require_timestamp
from .users import User


@dataclass(frozen=True, eq=False)
class Message:
    """An immutable message, owned by one room's message index."""

    room_id: str
    speaker: User
    event_id: str | None
    msgtype: str | None
    body: str | None
    sender: str
    created: int | float
    event: dict[str, Any] = field(repr=False)

    @classmethod
    def from_event(cls, room_id: str, speaker: User, event: dict[str, Any]) -> Message:
        """Build a message from a timeline event.

        Raises:
            MalformedEventError: If content, sender or timestamp is missing
        """
        content = require_content(event)
        return cls(
            room_id=room_id,
            speaker=speaker,
            event_id=event.get("event_id"),
            msgtype=content.get("msgtype"),
            body=content.get("body"),
            sender=require_sender(event),
            created=require_timestamp(event),
            event=event,
        )

    @property
    def text(self) -> str | None:
        return self.body
