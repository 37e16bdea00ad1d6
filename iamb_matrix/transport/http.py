"""
aiohttp transport for the Matrix client-server API.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any
from urllib.parse import quote

import aiohttp

from ..exceptions import ReauthenticationRequiredError, TransportError
from .base import MatrixTransport

logger = logging.getLogger(__name__)

API_PREFIX = "/_matrix/client/r0"

# errcodes meaning the access token is no longer usable
REAUTH_ERRCODES = frozenset({"M_UNKNOWN_TOKEN", "M_MISSING_TOKEN"})


class HttpTransport(MatrixTransport):
    """Transport issuing JSON requests against a homeserver.

    Example:
        >>> async with HttpTransport("https://matrix.example.com") as transport:
        ...     await transport.login("alice", "secret")
        ...     batch = await transport.sync()
    """

    def __init__(
        self,
        base_url: str,
        request_timeout: float = 60.0,
        session: aiohttp.ClientSession | None = None,
    ):
        """Initialize the transport.

        Args:
            base_url: Homeserver URL
            request_timeout: Seconds allowed per request, on top of any
                long-poll timeout requested from /sync
            session: Optional session to reuse (not closed by this transport)
        """
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def _url(self, *parts: str) -> str:
        return self.base_url + API_PREFIX + "".join(f"/{quote(p, safe='')}" for p in parts)

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(
        self,
        method: str,
        url: str,
        json_body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        extra_timeout: float = 0.0,
    ) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.request_timeout + extra_timeout)
        try:
            async with self._get_session().request(
                method,
                url,
                json=json_body,
                params=params,
                headers=self._headers(),
                timeout=timeout,
            ) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None

                if response.status >= 400:
                    raise self._error_for(response.status, body)
                if not isinstance(body, (dict, list)):
                    # Proxies and captive portals answer 200 with HTML
                    raise TransportError(
                        f"{method} {url} returned a non-JSON body",
                        status=response.status,
                    )
                return body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {url} failed", cause=e) from e

    def _error_for(self, status: int, body: Any) -> TransportError:
        errcode = None
        error = None
        if isinstance(body, dict):
            errcode = body.get("errcode")
            error = body.get("error")

        if errcode in REAUTH_ERRCODES or (status == 401 and self.token):
            logger.warning(f"Homeserver rejected access token ({errcode})")
            return ReauthenticationRequiredError(status=status, errcode=errcode)

        return TransportError(
            f"homeserver returned {status}: {error or errcode or 'no error body'}",
            status=status,
            errcode=errcode,
        )

    async def login(
        self, username: str, password: str, device_display_name: str = "iamb"
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            self._url("login"),
            json_body={
                "type": "m.login.password",
                "initial_device_display_name": device_display_name,
                "identifier": {"type": "m.id.user", "user": username},
                "user": username,
                "password": password,
            },
        )

    async def logout(self) -> None:
        await self._request("POST", self._url("logout"), json_body={})

    async def whoami(self) -> dict[str, Any]:
        return await self._request("GET", self._url("account", "whoami"))

    async def sync(self, since: str | None = None, timeout_ms: int | None = None) -> dict[str, Any]:
        params: dict[str, str] = {}
        if since is not None:
            params["since"] = since
        extra = 0.0
        if timeout_ms is not None:
            params["timeout"] = str(timeout_ms)
            extra = timeout_ms / 1000
        return await self._request("GET", self._url("sync"), params=params, extra_timeout=extra)

    async def send_message(self, room_id: str, body: str) -> dict[str, Any]:
        txn_id = uuid.uuid4().hex
        return await self._request(
            "PUT",
            self._url("rooms", room_id, "send", "m.room.message", txn_id),
            json_body={"msgtype": "m.text", "body": body},
        )

    async def get_room_state(self, room_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", self._url("rooms", room_id, "state"))

    async def list_joined_rooms(self) -> list[str]:
        body = await self._request("GET", self._url("joined_rooms"))
        return list(body.get("joined_rooms", [])) if isinstance(body, dict) else []
