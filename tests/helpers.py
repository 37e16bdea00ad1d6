"""
Test doubles and event builders shared by the test modules.

Provides a scripted in-memory transport so the sync engine can be driven
step by step without a homeserver.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from iamb_matrix.exceptions import TransportError
from iamb_matrix.transport import MatrixTransport


class FakeTransport(MatrixTransport):
    """Transport that replays scripted responses and records every call.

    ``sync_responses`` items are returned in order; exception instances are
    raised instead. Once the script runs out, empty batches with fresh
    cursors are returned.
    """

    def __init__(
        self,
        sync_responses: list[Any] | None = None,
        login_response: dict[str, Any] | Exception | None = None,
        whoami_response: dict[str, Any] | Exception | None = None,
        room_state: dict[str, list[dict[str, Any]]] | None = None,
    ):
        super().__init__()
        self.sync_responses = list(sync_responses or [])
        self.login_response = login_response or {
            "access_token": "T1",
            "user_id": "@u:example.com",
            "device_id": "DEV1",
        }
        self.whoami_response = whoami_response or {"user_id": "@u:example.com"}
        self.room_state = room_state or {}

        self.login_calls: list[tuple[str, str]] = []
        self.whoami_tokens: list[str] = []
        self.sync_calls: list[str | None] = []
        self.sent: list[tuple[str, str]] = []
        self.logged_out = False
        self.closed = False
        self._auto_batch = 0

    async def login(
        self, username: str, password: str, device_display_name: str = "iamb"
    ) -> dict[str, Any]:
        self.login_calls.append((username, password))
        if isinstance(self.login_response, Exception):
            raise self.login_response
        return self.login_response

    async def logout(self) -> None:
        self.logged_out = True

    async def whoami(self) -> dict[str, Any]:
        self.whoami_tokens.append(self.token)
        if isinstance(self.whoami_response, Exception):
            raise self.whoami_response
        return self.whoami_response

    async def sync(self, since: str | None = None, timeout_ms: int | None = None) -> dict[str, Any]:
        self.sync_calls.append(since)
        if self.sync_responses:
            response = self.sync_responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response

        self._auto_batch += 1
        return make_batch(f"auto{self._auto_batch}")

    async def send_message(self, room_id: str, body: str) -> dict[str, Any]:
        self.sent.append((room_id, body))
        return {"event_id": f"$sent{len(self.sent)}"}

    async def get_room_state(self, room_id: str) -> list[dict[str, Any]]:
        if room_id not in self.room_state:
            raise TransportError(f"no state for {room_id}", status=404, errcode="M_NOT_FOUND")
        return self.room_state[room_id]

    async def list_joined_rooms(self) -> list[str]:
        return list(self.room_state)

    async def close(self) -> None:
        self.closed = True


def make_batch(
    next_batch: str,
    join: dict[str, Any] | None = None,
    account_data: list[dict[str, Any]] | None = None,
    invite: dict[str, Any] | None = None,
    leave: dict[str, Any] | None = None,
) -> dict[str, Any]:
    batch: dict[str, Any] = {
        "next_batch": next_batch,
        "rooms": {"join": join or {}, "invite": invite or {}, "leave": leave or {}},
    }
    if account_data is not None:
        batch["account_data"] = {"events": account_data}
    return batch


def make_room(
    state: list[dict[str, Any]] | None = None,
    timeline: list[dict[str, Any]] | None = None,
    ephemeral: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    return {
        "state": {"events": state or []},
        "timeline": {"events": timeline or []},
        "ephemeral": {"events": ephemeral or []},
    }


def text_event(
    body: str,
    sender: str = "@a:x",
    ts: int = 1000,
    event_id: str | None = None,
) -> dict[str, Any]:
    event: dict[str, Any] = {
        "type": "m.room.message",
        "sender": sender,
        "origin_server_ts": ts,
        "content": {"msgtype": "m.text", "body": body},
    }
    if event_id:
        event["event_id"] = event_id
    return event


def member_event(user_id: str, displayname: str | None, ts: int) -> dict[str, Any]:
    return {
        "type": "m.room.member",
        "sender": user_id,
        "state_key": user_id,
        "origin_server_ts": ts,
        "content": {"membership": "join", "displayname": displayname},
    }


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays without waiting.

    ``observe``, when set, is called at every pause and its results are kept
    in ``observed``.
    """

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.observe: Callable[[], Any] | None = None
        self.observed: list[Any] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.observe is not None:
            self.observed.append(self.observe())
