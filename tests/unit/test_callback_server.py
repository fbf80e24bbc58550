"""Tests for the loopback bridge server, run for real on an ephemeral port."""

import socket

import httpx
import pytest

from bahn_auth.callback_server import BridgeCallbackServer
from bahn_auth.errors import AcquirerUnavailable, CallbackTimeout


def _base(server: BridgeCallbackServer) -> str:
    return f"http://127.0.0.1:{server.port}"


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(trust_env=False, timeout=5.0)


class TestBridgeCallbackServer:
    """Tests for the bridge page and the exchange endpoint."""

    async def test_ephemeral_port_and_redirect_uri(self) -> None:
        async with BridgeCallbackServer() as server:
            assert server.port > 0
            assert server.redirect_uri == f"http://127.0.0.1:{server.port}/callback"

    async def test_redirect_uri_requires_running_server(self) -> None:
        with pytest.raises(RuntimeError):
            _ = BridgeCallbackServer().redirect_uri

    async def test_redirect_uri_reaches_listener(self) -> None:
        async with BridgeCallbackServer() as server, _client() as client:
            response = await client.get(server.redirect_uri)
        assert response.status_code == 200
        assert "location.hash" in response.text

    async def test_callback_serves_bridge_page(self) -> None:
        async with BridgeCallbackServer() as server, _client() as client:
            response = await client.get(f"{_base(server)}/callback")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "location.hash" in response.text
        assert "/exchange" in response.text

    async def test_exchange_delivers_code(self) -> None:
        async with BridgeCallbackServer() as server, _client() as client:
            response = await client.get(f"{_base(server)}/exchange", params={"code": "c1", "state": "s1"})
            params = await server.wait_for_callback(timeout=5)
        assert response.status_code == 200
        assert "Authentication successful" in response.text
        assert (params.code, params.state) == ("c1", "s1")

    async def test_exchange_delivers_error(self) -> None:
        async with BridgeCallbackServer() as server, _client() as client:
            response = await client.get(
                f"{_base(server)}/exchange",
                params={"error": "access_denied", "error_description": "<b>no</b>"},
            )
            params = await server.wait_for_callback(timeout=5)
        assert response.status_code == 400
        assert "&lt;b&gt;no&lt;/b&gt;" in response.text
        assert params.error == "access_denied"

    async def test_first_callback_wins(self) -> None:
        async with BridgeCallbackServer() as server, _client() as client:
            await client.get(f"{_base(server)}/exchange", params={"code": "first", "state": "s"})
            await client.get(f"{_base(server)}/exchange", params={"code": "second", "state": "s"})
            params = await server.wait_for_callback(timeout=5)
        assert params.code == "first"

    async def test_timeout(self) -> None:
        async with BridgeCallbackServer() as server:
            with pytest.raises(CallbackTimeout):
                await server.wait_for_callback(timeout=0.05)

    async def test_late_callback_after_timeout_is_ignored(self) -> None:
        async with BridgeCallbackServer() as server, _client() as client:
            with pytest.raises(CallbackTimeout):
                await server.wait_for_callback(timeout=0.05)
            response = await client.get(f"{_base(server)}/exchange", params={"code": "late", "state": "s"})
            assert response.status_code == 200
            assert server._result.cancelled()

    async def test_listener_released_after_exit(self) -> None:
        async with BridgeCallbackServer() as server:
            port = server.port
        async with _client() as client:
            with pytest.raises(httpx.ConnectError):
                await client.get(f"http://127.0.0.1:{port}/callback")

    async def test_concurrent_servers_are_isolated(self) -> None:
        async with BridgeCallbackServer() as a, BridgeCallbackServer() as b, _client() as client:
            assert a.port != b.port
            await client.get(f"{_base(b)}/exchange", params={"code": "for-b", "state": "sb"})
            await client.get(f"{_base(a)}/exchange", params={"code": "for-a", "state": "sa"})
            assert (await a.wait_for_callback(timeout=5)).code == "for-a"
            assert (await b.wait_for_callback(timeout=5)).code == "for-b"

    async def test_port_in_use(self) -> None:
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        try:
            server = BridgeCallbackServer(port=blocker.getsockname()[1])
            with pytest.raises(AcquirerUnavailable):
                await server.start()
        finally:
            blocker.close()
