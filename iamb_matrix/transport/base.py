"""
Abstract homeserver transport.

The sync engine talks to the homeserver only through this interface, which
keeps it testable against scripted transports.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class MatrixTransport(ABC):
    """Authenticated access to the client-server API.

    Implementations raise TransportError for failed requests and
    ReauthenticationRequiredError when the homeserver rejects the current
    access token.
    """

    def __init__(self) -> None:
        self.token: str = ""

    @abstractmethod
    async def login(
        self, username: str, password: str, device_display_name: str = "iamb"
    ) -> dict[str, Any]:
        """Log in with a password.

        Returns:
            Login response with ``access_token``, ``user_id`` and ``device_id``
        """
        pass

    @abstractmethod
    async def logout(self) -> None:
        """Invalidate the current access token."""
        pass

    @abstractmethod
    async def whoami(self) -> dict[str, Any]:
        """Resolve the identity owning the current access token.

        Returns:
            Response with ``user_id`` (and ``device_id`` where supported)
        """
        pass

    @abstractmethod
    async def sync(self, since: str | None = None, timeout_ms: int | None = None) -> dict[str, Any]:
        """Fetch events since ``since``, or the initial state when it is None.

        The response looks like:

            {
                "next_batch": "...",
                "account_data": {"events": []},
                "to_device": {"events": []},
                "presence": {"events": []},
                "device_lists": {"changed": [], "left": []},
                "rooms": {"leave": {}, "join": {}, "invite": {}}
            }
        """
        pass

    @abstractmethod
    async def send_message(self, room_id: str, body: str) -> dict[str, Any]:
        """Send a plain ``m.text`` message."""
        pass

    @abstractmethod
    async def get_room_state(self, room_id: str) -> list[dict[str, Any]]:
        """Fetch every current state event of a room."""
        pass

    @abstractmethod
    async def list_joined_rooms(self) -> list[str]:
        pass

    async def close(self) -> None:
        """Release network resources. Default is a no-op."""
        pass
