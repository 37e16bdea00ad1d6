"""
Matrix sync engine.

Authenticates against the homeserver, then repeatedly long-polls /sync and
folds each batch into rooms, users and messages:

    authenticating -> authenticating.token | authenticating.password
                   -> sync <-> sync.wait | sync.failed
                   -> failed (terminal)

Authentication failures are fatal. Sync failures are retried forever at a
fixed interval. Only one network call is in flight at any time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from ..config import AccountConfig, ClientConfig
from ..events import AccountDataType, ClientEventType, event_type_of, require_content
from ..exceptions import (
    AuthenticationError,
    MalformedEventError,
    MatrixClientFailure,
    ReauthenticationRequiredError,
    SyncError,
    TransportError,
)
from ..store.room import Room, RoomUpdate
from ..store.users import UserDirectory
from ..transport.base import MatrixTransport
from ..transport.http import HttpTransport
from .state import ClientState, StateMachine

logger = logging.getLogger(__name__)

Listener = Callable[..., None]


@dataclass
class Identity:
    """Who the homeserver says we are."""

    user_id: str | None
    device_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> Identity:
        return cls(
            user_id=data.get("user_id"),
            device_id=data.get("device_id"),
            raw=data,
        )


class MatrixClient:
    """Client-side sync engine and state store.

    Observers register with ``on``:
    - ``connected``: first successful sync, fired once
    - ``room``: a newly joined room (Room)
    - ``message``: a new message (Message)
    - ``error``: terminal failure (MatrixClientFailure)

    Example:
        >>> client = MatrixClient(AccountConfig(url=..., username=..., password=...))
        >>> client.on("message", lambda m: print(m.speaker.display_name, m.text))
        >>> await client.start()
    """

    def __init__(
        self,
        account: AccountConfig,
        transport: MatrixTransport | None = None,
        config: ClientConfig | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            account: Homeserver URL and credentials
            transport: Transport to use; defaults to an HttpTransport on account.url
            config: Engine tunables
        """
        account.validate()

        self.account = account
        self.config = config or ClientConfig()
        self._owns_transport = transport is None
        self.transport = transport or HttpTransport(account.url)

        self.user: Identity | None = None
        self.users = UserDirectory()
        self.next_batch: str | None = None
        self.last_error: Exception | None = None

        self._rooms: dict[str, Room] = {}
        self._aliases: dict[str, str] = {}
        self._direct: dict[str, list[str]] = {}

        self._machine = StateMachine(ClientState.AUTHENTICATING)
        self._listeners: dict[ClientEventType, list[Listener]] = {
            event_type: [] for event_type in ClientEventType
        }
        self._handlers: dict[ClientState, Callable[[], Awaitable[None]]] = {
            ClientState.AUTHENTICATING: self._authenticating,
            ClientState.AUTHENTICATING_TOKEN: self._authenticating_token,
            ClientState.AUTHENTICATING_PASSWORD: self._authenticating_password,
            ClientState.SYNC: self._sync,
            ClientState.SYNC_WAIT: self._sync_wait,
            ClientState.SYNC_FAILED: self._sync_failed,
        }

        self._running = False
        self._task: asyncio.Task[None] | None = None

    # -- Observers

    def on(self, event_type: ClientEventType | str, listener: Listener) -> None:
        """Register a listener for a client notification."""
        self._listeners[ClientEventType(event_type)].append(listener)

    def remove_listener(self, event_type: ClientEventType | str, listener: Listener) -> None:
        listeners = self._listeners[ClientEventType(event_type)]
        if listener in listeners:
            listeners.remove(listener)

    def _emit(self, event_type: ClientEventType, *args: Any) -> None:
        for listener in list(self._listeners[event_type]):
            listener(*args)

    # -- Lifecycle

    @property
    def state(self) -> ClientState:
        return self._machine.state

    def is_running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Run the engine in a background task."""
        if self.is_running():
            return

        self._running = True
        self._task = asyncio.create_task(self.run())
        self._task.add_done_callback(self._on_task_done)
        logger.info(f"Matrix client started: {self.account.url}")

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            self.last_error = error
            logger.error(
                f"Matrix client task crashed: {error!r}",
                exc_info=(type(error), error, error.__traceback__),
            )

    async def stop(self) -> None:
        """Stop the engine and release the transport if we created it.

        A crash of the background task has already been logged and stored in
        ``last_error``; stopping afterwards still releases the transport.
        """
        self._running = False

        try:
            if self._task:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
                except Exception:
                    # Reported by _on_task_done
                    pass
        finally:
            self._task = None
            if self._owns_transport:
                await self.transport.close()

        logger.info("Matrix client stopped")

    async def run(self) -> None:
        """Drive the state machine until it fails or the client is stopped."""
        self._running = True
        try:
            while self._running and not self._machine.is_terminal:
                await self.step()
        finally:
            self._running = False

    async def step(self) -> ClientState:
        """Run the current state's action once.

        Returns:
            The state the engine is in afterwards
        """
        if self._machine.is_terminal:
            return self.state

        await self._handlers[self.state]()
        return self.state

    def _goto(self, target: ClientState) -> None:
        self._machine.transition(target)

        if target is ClientState.FAILED:
            self._enter_failed()

    # -- States

    async def _authenticating(self) -> None:
        if self.account.uses_token:
            self._goto(ClientState.AUTHENTICATING_TOKEN)
        else:
            self._goto(ClientState.AUTHENTICATING_PASSWORD)

    async def _authenticating_token(self) -> None:
        self.transport.token = self.account.token or ""
        try:
            response = await self.transport.whoami()
            if not isinstance(response, dict):
                raise TransportError("whoami response was not a JSON object")
        except TransportError as e:
            self.last_error = AuthenticationError(self.account.username, cause=e)
            self._goto(ClientState.FAILED)
            return

        self.user = Identity.from_response(response)
        logger.info(f"Authenticated with token as {self.user.user_id}")
        self._goto(ClientState.SYNC)

    async def _authenticating_password(self) -> None:
        try:
            response = await self.transport.login(
                self.account.username,
                self.account.password or "",
                self.config.device_display_name,
            )
            token = response.get("access_token") if isinstance(response, dict) else None
            if not isinstance(token, str) or not token:
                raise TransportError("login response carried no access_token")
        except TransportError as e:
            self.last_error = AuthenticationError(self.account.username, cause=e)
            self._goto(ClientState.FAILED)
            return

        self.transport.token = token
        # Login only tells us the user and device ids
        self.user = Identity.from_response(response)
        logger.info(f"Logged in as {self.user.user_id}")
        self._goto(ClientState.SYNC)

    async def _sync(self) -> None:
        since = self.next_batch
        try:
            batch = await self.transport.sync(since, self.config.sync_timeout_ms)
        except ReauthenticationRequiredError as e:
            self.last_error = SyncError(since, cause=e)
            logger.warning("Session expired; reauthenticating", extra={"since": since})
            # Paced like sync retries
            await asyncio.sleep(self.config.sync_interval)
            self._goto(ClientState.AUTHENTICATING)
            return
        except TransportError as e:
            self.last_error = SyncError(since, cause=e)
            self._goto(ClientState.SYNC_FAILED)
            return

        if not isinstance(batch, dict) or not isinstance(batch.get("next_batch"), str):
            raise MalformedEventError("next_batch", batch if isinstance(batch, dict) else None)

        self._process(batch)

        if self.next_batch is None:
            # First batch fetched: the client is ready for use
            logger.info("Initial sync complete")
            self._emit(ClientEventType.CONNECTED)
        self.next_batch = batch["next_batch"]

        self._goto(ClientState.SYNC_WAIT)

    async def _sync_wait(self) -> None:
        await asyncio.sleep(self.config.sync_interval)
        self._goto(ClientState.SYNC)

    async def _sync_failed(self) -> None:
        logger.error(
            f"sync has failed; will retry: {self.last_error}",
            extra={"since": self.next_batch},
        )
        await asyncio.sleep(self.config.sync_interval)
        self._goto(ClientState.SYNC)

    def _enter_failed(self) -> None:
        cause = self.last_error or RuntimeError("unknown failure")
        logger.error(f"Matrix client failed: {cause}")
        self._emit(ClientEventType.ERROR, MatrixClientFailure(cause))

    # -- Batch processing

    def _process(self, batch: dict[str, Any]) -> None:
        if "account_data" in batch:
            self._process_account_data(batch["account_data"])

        rooms = batch.get("rooms") or {}
        join = rooms.get("join") or {}

        for room_id, info in join.items():
            room = self._rooms.get(room_id)
            if room is not None:
                update = room.sync(info)
                self._register_aliases(room, update)
                self._emit_messages(update)
                continue

            room = Room(room_id, self.users, self.transport)
            update = room.sync(info)
            self._rooms[room_id] = room
            self._register_aliases(room, update)
            self._emit(ClientEventType.ROOM, room)
            self._emit_messages(update)

        # Invites and departures are not acted upon yet
        invite = rooms.get("invite") or {}
        leave = rooms.get("leave") or {}
        if invite or leave:
            logger.debug(
                f"Ignoring {len(invite)} invited and {len(leave)} left rooms",
                extra={"invite": list(invite), "leave": list(leave)},
            )

    def _process_account_data(self, section: Any) -> None:
        if not isinstance(section, dict) or not isinstance(section.get("events"), list):
            raise MalformedEventError("account_data.events")

        for event in section["events"]:
            event_type = event_type_of(event)
            kind = AccountDataType.parse(event_type)

            if kind is AccountDataType.DIRECT:
                content = require_content(event)
                self._direct = {
                    peer: list(room_ids)
                    for peer, room_ids in content.items()
                    if isinstance(room_ids, list)
                }
            elif kind is AccountDataType.PUSH_RULES:
                # Notification rules are received but not evaluated
                pass
            else:
                logger.warning(f"unknown event type {event_type!r}", extra={"event": event})

    def _register_aliases(self, room: Room, update: RoomUpdate) -> None:
        for alias in update.aliases:
            self._aliases[alias] = room.room_id

    def _emit_messages(self, update: RoomUpdate) -> None:
        for message in update.messages:
            self._emit(ClientEventType.MESSAGE, message)

    # -- Queries and consumer operations

    @property
    def rooms(self) -> Mapping[str, Room]:
        return MappingProxyType(self._rooms)

    @property
    def aliases(self) -> Mapping[str, str]:
        return MappingProxyType(self._aliases)

    def get_room_by_name(self, name: str) -> Room | None:
        """Look up a room by ``!id`` or ``#alias``."""
        room = self._rooms.get(name)
        if room is not None:
            return room

        room_id = self._aliases.get(name)
        if room_id is not None:
            return self._rooms.get(room_id)

        return None

    def get_direct_by_name(self, name: str) -> Room | None:
        """First joined room in the direct-message map for peer ``name``."""
        for room_id in self._direct.get(name, []):
            room = self._rooms.get(room_id)
            if room is not None:
                return room
        return None

    async def refresh_room_state(self, name: str) -> Room:
        """Re-fetch a room's full state and run it through the reducer.

        Raises:
            KeyError: If no joined room matches ``name``
        """
        room = self.get_room_by_name(name)
        if room is None:
            raise KeyError(name)

        update = await room.refresh_state()
        self._register_aliases(room, update)
        self._emit_messages(update)
        return room

    async def logout(self) -> None:
        await self.transport.logout()
        self.transport.token = ""
        logger.info("Logged out")
