"""Tests for authorization code redemption."""

from collections.abc import Callable
from urllib.parse import parse_qs

import httpx
import pytest

from bahn_auth.errors import EXIT_FAILURE, EXIT_NETWORK, TokenExchangeFailure
from bahn_auth.token_exchange import TokenResponse, exchange_code_for_tokens

TOKEN_URL = "https://accounts.bahn.de/auth/realms/db/protocol/openid-connect/token"


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestExchangeCodeForTokens:
    """Tests for the token endpoint request."""

    async def test_success(self, make_jwt: Callable[..., str]) -> None:
        access_token = make_jwt()
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"access_token": access_token, "id_token": "id.tok.en", "token_type": "Bearer", "expires_in": 300},
            )

        async with _client(handler) as client:
            tokens = await exchange_code_for_tokens("the-code", "the-verifier", "http://localhost:1/callback", client=client)

        assert tokens.access_token == access_token
        assert tokens.id_token == "id.tok.en"

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == TOKEN_URL
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        assert form == {
            "grant_type": "authorization_code",
            "client_id": "kf_web",
            "redirect_uri": "http://localhost:1/callback",
            "code": "the-code",
            "code_verifier": "the-verifier",
        }

    async def test_invalid_grant_surfaced_verbatim(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Code not valid"})

        async with _client(handler) as client:
            with pytest.raises(TokenExchangeFailure) as exc_info:
                await exchange_code_for_tokens("c", "v", "http://x/cb", client=client)

        failure = exc_info.value
        assert failure.error == "invalid_grant"
        assert failure.description == "Code not valid"
        assert failure.status_code == 400
        assert str(failure) == "token exchange failed: invalid_grant - Code not valid"
        assert failure.exit_code == EXIT_FAILURE

    async def test_non_json_error_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Service Unavailable")

        async with _client(handler) as client:
            with pytest.raises(TokenExchangeFailure, match="status 503: Service Unavailable"):
                await exchange_code_for_tokens("c", "v", "http://x/cb", client=client)

    async def test_malformed_success_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        async with _client(handler) as client:
            with pytest.raises(TokenExchangeFailure, match="parsing token response"):
                await exchange_code_for_tokens("c", "v", "http://x/cb", client=client)

    async def test_missing_access_token(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"token_type": "Bearer"})

        async with _client(handler) as client:
            with pytest.raises(TokenExchangeFailure, match="no access_token"):
                await exchange_code_for_tokens("c", "v", "http://x/cb", client=client)

    async def test_transport_error_is_network_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TokenExchangeFailure) as exc_info:
                await exchange_code_for_tokens("c", "v", "http://x/cb", client=client)
        assert exc_info.value.exit_code == EXIT_NETWORK


class TestTokenResponse:
    """Tests for the token response model."""

    def test_to_token_set_uses_exp(self, make_jwt: Callable[..., str]) -> None:
        token = make_jwt(exp=2_000_000_000)
        token_set = TokenResponse.from_json({"access_token": token}).to_token_set()
        assert int(token_set.expires_at.timestamp()) == 2_000_000_000
        assert token_set.id_token is None
