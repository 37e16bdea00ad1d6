"""
Rooms and the per-room event reducer.

A room folds state, timeline and ephemeral events into its fields, its
message index and the shared user directory. The alias table belongs to the
client: the reducer reports alias claims in the returned RoomUpdate and the
client records them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..events import (
    EphemeralEventType,
    RoomEventType,
    event_type_of,
    require_content,
    require_sender,
)
from ..exceptions import MalformedEventError
from ..logging_utils import RoomLoggerAdapter
from .message import Message
from .timeline import MessageIndex
from .users import UserDirectory

if TYPE_CHECKING:
    from ..transport.base import MatrixTransport

logger = logging.getLogger(__name__)


@dataclass
class RoomUpdate:
    """What a reducer pass produced, in event order."""

    messages: list[Message] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)


def _events(section: Any, name: str) -> list[dict[str, Any]]:
    """Pull the event list out of a ``{"events": [...]}`` section."""
    if section is None:
        return []
    if not isinstance(section, dict):
        raise MalformedEventError(name)
    events = section.get("events", [])
    if not isinstance(events, list):
        raise MalformedEventError(f"{name}.events")
    return events


class Room:
    """A joined room.

    Consumers read rooms and may send messages to them; every other change
    comes from the client applying sync batches.
    """

    def __init__(
        self,
        room_id: str,
        users: UserDirectory,
        transport: MatrixTransport | None = None,
    ):
        if not isinstance(room_id, str) or not room_id:
            raise ValueError("room_id must be a non-empty string")

        self.room_id = room_id
        self.name: str | None = None
        self.topic: str | None = None
        self.alias: str | None = None
        self.messages = MessageIndex()

        self._users = users
        self._transport = transport
        self.log = RoomLoggerAdapter(logger, room_id)

    def __repr__(self) -> str:
        return f"Room({self.room_id!r}, name={self.name!r}, alias={self.alias!r})"

    @property
    def display_name(self) -> str:
        return self.name or self.alias or self.room_id

    # -- Reducer

    def sync(self, info: dict[str, Any]) -> RoomUpdate:
        """Apply one room's slice of a sync response."""
        if not isinstance(info, dict):
            raise MalformedEventError("room", None)
        return self.apply(
            _events(info.get("state"), "state"),
            _events(info.get("timeline"), "timeline"),
            _events(info.get("ephemeral"), "ephemeral"),
        )

    def apply(
        self,
        state_events: Iterable[dict[str, Any]],
        timeline_events: Iterable[dict[str, Any]],
        ephemeral_events: Iterable[dict[str, Any]],
    ) -> RoomUpdate:
        """Apply events in fixed order: state, then timeline, then ephemeral."""
        update = RoomUpdate()

        for event in state_events:
            self._handle(event, update)

        for event in timeline_events:
            self._handle(event, update)

        for event in ephemeral_events:
            self._ephemeral(event)

        return update

    def _handle(self, event: dict[str, Any], update: RoomUpdate) -> None:
        event_type = event_type_of(event)
        kind = RoomEventType.parse(event_type)
        if kind is None:
            self.log.warning(f"unknown event type {event_type!r}", extra={"event": event})
            return

        handler = self._HANDLERS.get(kind)
        if handler is not None:
            handler(self, event, update)

    def _ephemeral(self, event: dict[str, Any]) -> None:
        event_type = event_type_of(event)
        if EphemeralEventType.parse(event_type) is None:
            self.log.warning(
                f"unknown ephemeral type {event_type!r}", extra={"ephemeral": event}
            )

    def _on_name(self, event: dict[str, Any], update: RoomUpdate) -> None:
        self.name = require_content(event).get("name")

    def _on_topic(self, event: dict[str, Any], update: RoomUpdate) -> None:
        self.topic = require_content(event).get("topic")

    def _on_canonical_alias(self, event: dict[str, Any], update: RoomUpdate) -> None:
        self.alias = require_content(event).get("alias")
        if self.alias:
            update.aliases.append(self.alias)

    def _on_member(self, event: dict[str, Any], update: RoomUpdate) -> None:
        self._users.update(event)

    def _on_message(self, event: dict[str, Any], update: RoomUpdate) -> None:
        speaker = self._users.get_user(require_sender(event))
        message = Message.from_event(self.room_id, speaker, event)
        self.messages.insert(message)
        update.messages.append(message)

    # Types absent from this table are recognised and deliberately ignored:
    # avatars, group links, room creation, join rules, history visibility,
    # power levels, guest access, encryption and URL previews.
    _HANDLERS: dict[RoomEventType, Callable[[Room, dict[str, Any], RoomUpdate], None]] = {
        RoomEventType.NAME: _on_name,
        RoomEventType.TOPIC: _on_topic,
        RoomEventType.CANONICAL_ALIAS: _on_canonical_alias,
        RoomEventType.MEMBER: _on_member,
        RoomEventType.MESSAGE: _on_message,
    }

    # -- Consumer operations

    def for_each_message(self, visitor: Callable[[Message], None]) -> None:
        self.messages.for_each(visitor)

    async def send_message(self, body: str) -> dict[str, Any]:
        """Send a plain text message to this room.

        Returns:
            The homeserver's acknowledgement (contains ``event_id``)
        """
        if not isinstance(body, str):
            raise TypeError("message body must be a string")
        if self._transport is None:
            raise RuntimeError(f"room {self.room_id} has no transport to send with")
        return await self._transport.send_message(self.room_id, body)

    async def refresh_state(self) -> RoomUpdate:
        """Fetch the room's full current state and apply it as state events."""
        if self._transport is None:
            raise RuntimeError(f"room {self.room_id} has no transport to fetch state with")
        events = await self._transport.get_room_state(self.room_id)
        return self.apply(events, [], [])
