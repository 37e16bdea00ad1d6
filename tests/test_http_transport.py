"""Tests for the aiohttp transport against an in-process homeserver stub."""

from __future__ import annotations

from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from iamb_matrix import AccountConfig, ClientConfig, ClientState, MatrixClient
from iamb_matrix.exceptions import ReauthenticationRequiredError, SyncError, TransportError
from iamb_matrix.transport import HttpTransport

PREFIX = "/_matrix/client/r0"


class Homeserver:
    """Minimal homeserver recording the requests it receives."""

    def __init__(self) -> None:
        self.requests: list[dict[str, Any]] = []
        self.valid_token = "T1"

    def _authorized(self, request: web.Request) -> bool:
        return request.headers.get("Authorization") == f"Bearer {self.valid_token}"

    async def _record(self, request: web.Request) -> None:
        body = await request.json() if request.can_read_body else None
        self.requests.append(
            {
                "method": request.method,
                "path": request.path,
                "query": dict(request.query),
                "body": body,
                "auth": request.headers.get("Authorization"),
            }
        )

    def _unknown_token(self) -> web.Response:
        return web.json_response(
            {"errcode": "M_UNKNOWN_TOKEN", "error": "Invalid access token"}, status=401
        )

    async def login(self, request: web.Request) -> web.Response:
        await self._record(request)
        body = await request.json()
        if body.get("password") != "p":
            return web.json_response({"errcode": "M_FORBIDDEN", "error": "Invalid password"}, status=403)
        return web.json_response(
            {"access_token": self.valid_token, "user_id": "@u:example.com", "device_id": "DEV"}
        )

    async def whoami(self, request: web.Request) -> web.Response:
        await self._record(request)
        if not self._authorized(request):
            return self._unknown_token()
        return web.json_response({"user_id": "@u:example.com"})

    async def sync(self, request: web.Request) -> web.Response:
        await self._record(request)
        if not self._authorized(request):
            return self._unknown_token()
        since = request.query.get("since")
        return web.json_response(
            {"next_batch": "B2" if since else "B1", "rooms": {"join": {}, "invite": {}, "leave": {}}}
        )

    async def send(self, request: web.Request) -> web.Response:
        await self._record(request)
        return web.json_response({"event_id": "$sent"})

    async def state(self, request: web.Request) -> web.Response:
        await self._record(request)
        if request.match_info["room_id"] != "!r1:example.com":
            return web.json_response({"errcode": "M_FORBIDDEN", "error": "not in room"}, status=403)
        return web.json_response([{"type": "m.room.name", "content": {"name": "General"}}])

    async def joined_rooms(self, request: web.Request) -> web.Response:
        await self._record(request)
        return web.json_response({"joined_rooms": ["!r1:example.com"]})

    async def logout(self, request: web.Request) -> web.Response:
        await self._record(request)
        return web.json_response({})

    async def broken(self, request: web.Request) -> web.Response:
        return web.Response(status=502, text="bad gateway")

    async def unauthorized(self, request: web.Request) -> web.Response:
        return web.Response(status=401, text="unauthorized")

    async def portal(self, request: web.Request) -> web.Response:
        await self._record(request)
        return web.Response(status=200, text="<html>sign in</html>", content_type="text/html")

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(f"{PREFIX}/login", self.login)
        app.router.add_post(f"{PREFIX}/logout", self.logout)
        app.router.add_get(f"{PREFIX}/account/whoami", self.whoami)
        app.router.add_get(f"{PREFIX}/sync", self.sync)
        app.router.add_put(f"{PREFIX}/rooms/{{room_id}}/send/{{event_type}}/{{txn_id}}", self.send)
        app.router.add_get(f"{PREFIX}/rooms/{{room_id}}/state", self.state)
        app.router.add_get(f"{PREFIX}/joined_rooms", self.joined_rooms)
        app.router.add_get("/broken" + f"{PREFIX}/sync", self.broken)
        app.router.add_get("/bare401" + f"{PREFIX}/account/whoami", self.unauthorized)
        app.router.add_get("/portal" + f"{PREFIX}/account/whoami", self.whoami)
        app.router.add_get("/portal" + f"{PREFIX}/sync", self.portal)
        return app


@pytest.fixture
def homeserver() -> Homeserver:
    return Homeserver()


class TestHttpTransport:
    """Tests for requests, headers and error mapping."""

    @pytest.mark.asyncio
    async def test_login_then_sync(self, homeserver) -> None:
        async with TestServer(homeserver.app()) as server:
            async with HttpTransport(str(server.make_url(""))) as transport:
                response = await transport.login("u", "p", "test-device")
                transport.token = response["access_token"]

                first = await transport.sync()
                second = await transport.sync(first["next_batch"], timeout_ms=100)

        assert first["next_batch"] == "B1"
        assert second["next_batch"] == "B2"

        login = homeserver.requests[0]
        assert login["body"]["type"] == "m.login.password"
        assert login["body"]["initial_device_display_name"] == "test-device"
        assert login["auth"] is None

        assert homeserver.requests[1]["query"] == {}
        assert homeserver.requests[2]["query"] == {"since": "B1", "timeout": "100"}
        assert homeserver.requests[2]["auth"] == "Bearer T1"

    @pytest.mark.asyncio
    async def test_rejected_password(self, homeserver) -> None:
        async with TestServer(homeserver.app()) as server:
            async with HttpTransport(str(server.make_url(""))) as transport:
                with pytest.raises(TransportError) as exc_info:
                    await transport.login("u", "wrong")

        assert exc_info.value.status == 403
        assert exc_info.value.errcode == "M_FORBIDDEN"
        assert not isinstance(exc_info.value, ReauthenticationRequiredError)

    @pytest.mark.asyncio
    async def test_unknown_token_signals_reauth(self, homeserver) -> None:
        async with TestServer(homeserver.app()) as server:
            async with HttpTransport(str(server.make_url(""))) as transport:
                transport.token = "expired"
                with pytest.raises(ReauthenticationRequiredError) as exc_info:
                    await transport.whoami()

        assert exc_info.value.status == 401
        assert exc_info.value.errcode == "M_UNKNOWN_TOKEN"

    @pytest.mark.asyncio
    async def test_room_operations_quote_ids(self, homeserver) -> None:
        async with TestServer(homeserver.app()) as server:
            async with HttpTransport(str(server.make_url(""))) as transport:
                transport.token = "T1"
                ack = await transport.send_message("!r1:example.com", "hello")
                state = await transport.get_room_state("!r1:example.com")
                rooms = await transport.list_joined_rooms()
                await transport.logout()

        assert ack == {"event_id": "$sent"}
        assert state == [{"type": "m.room.name", "content": {"name": "General"}}]
        assert rooms == ["!r1:example.com"]

        send = homeserver.requests[0]
        assert send["method"] == "PUT"
        assert send["path"].startswith(f"{PREFIX}/rooms/!r1:example.com/send/m.room.message/")
        assert send["body"] == {"msgtype": "m.text", "body": "hello"}
        assert homeserver.requests[-1]["path"] == f"{PREFIX}/logout"

    @pytest.mark.asyncio
    async def test_server_error_without_json(self, homeserver) -> None:
        async with TestServer(homeserver.app()) as server:
            async with HttpTransport(str(server.make_url("/broken"))) as transport:
                with pytest.raises(TransportError) as exc_info:
                    await transport.sync()

        assert exc_info.value.status == 502
        assert exc_info.value.errcode is None

    @pytest.mark.asyncio
    async def test_connection_failure_wrapped(self) -> None:
        # Nothing listens on port 1
        async with HttpTransport("http://127.0.0.1:1", request_timeout=5) as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.whoami()

        assert exc_info.value.cause is not None
        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_bare_401_with_token_signals_reauth(self, homeserver) -> None:
        async with TestServer(homeserver.app()) as server:
            async with HttpTransport(str(server.make_url("/bare401"))) as transport:
                with pytest.raises(TransportError) as anonymous:
                    await transport.whoami()

                transport.token = "T1"
                with pytest.raises(ReauthenticationRequiredError) as exc_info:
                    await transport.whoami()

        assert not isinstance(anonymous.value, ReauthenticationRequiredError)
        assert exc_info.value.status == 401
        assert exc_info.value.errcode is None

    @pytest.mark.asyncio
    async def test_html_success_body_is_transport_error(self, homeserver) -> None:
        async with TestServer(homeserver.app()) as server:
            async with HttpTransport(str(server.make_url("/portal"))) as transport:
                transport.token = "T1"
                with pytest.raises(TransportError) as exc_info:
                    await transport.sync()

        assert exc_info.value.status == 200
        assert not isinstance(exc_info.value, ReauthenticationRequiredError)

    @pytest.mark.asyncio
    async def test_html_sync_body_is_retried_by_client(self, homeserver) -> None:
        account = AccountConfig(url="https://example.com", username="u", token="T1")
        async with TestServer(homeserver.app()) as server:
            async with HttpTransport(str(server.make_url("/portal"))) as transport:
                client = MatrixClient(account, transport=transport, config=ClientConfig(sync_interval=0))

                assert await client.step() is ClientState.AUTHENTICATING_TOKEN
                assert await client.step() is ClientState.SYNC
                assert await client.step() is ClientState.SYNC_FAILED

        assert isinstance(client.last_error, SyncError)
        assert client.next_batch is None
