"""Tests for the TokenManager facade."""

import datetime
import logging
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from bahn_auth.acquirers import CallbackAcquirer
from bahn_auth.errors import ClaimsDecodeFailure, NotAuthenticated, SessionExpired
from bahn_auth.fragment import CallbackParams
from bahn_auth.jwt_utils import token_set_from_jwt
from bahn_auth.models import AuthorizationGrant, TokenSet
from bahn_auth.storage import TokenStorage
from bahn_auth.token_manager import TokenManager


class StubAcquirer(CallbackAcquirer):
    """Returns a fixed code and records the attempt's values."""

    name = "stub"

    def __init__(self) -> None:
        super().__init__(open_browser=lambda _url: True, on_status=lambda _msg: None)
        self.calls: list[tuple[str, str]] = []

    async def acquire(self, state: str, challenge: str) -> AuthorizationGrant:
        self.calls.append((state, challenge))
        return AuthorizationGrant(code="stub-code", state=state, redirect_uri="http://localhost:5/callback")

    async def _receive(self, state: str, challenge: str) -> tuple[CallbackParams, str]:
        raise NotImplementedError


class StubRefresher:
    """Silent refresher double."""

    def __init__(self, result: TokenSet | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls = 0

    async def refresh(self) -> TokenSet:
        self.calls += 1
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result


@pytest.fixture
def storage(tmp_path: Path) -> TokenStorage:
    return TokenStorage(str(tmp_path / "tokens.json"))


class TestLogin:
    """Tests for interactive login orchestration."""

    async def test_login_exchanges_and_stores(self, storage: TokenStorage, make_jwt: Callable[..., str]) -> None:
        access_token = make_jwt()
        forms: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            forms.append(request.content)
            return httpx.Response(200, json={"access_token": access_token, "id_token": "i.d.t"})

        acquirer = StubAcquirer()
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            manager = TokenManager(storage=storage, acquirer=acquirer, http_client=client)
            tokens = await manager.login()

        assert tokens.access_token == access_token
        assert storage.load_tokens() == tokens
        assert len(acquirer.calls) == 1
        body = forms[0].decode()
        assert "code=stub-code" in body
        assert "redirect_uri=http%3A%2F%2Flocalhost%3A5%2Fcallback" in body

    async def test_each_login_gets_fresh_values(self, storage: TokenStorage, make_jwt: Callable[..., str]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"access_token": make_jwt()})

        acquirer = StubAcquirer()
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            manager = TokenManager(storage=storage, acquirer=acquirer, http_client=client)
            await manager.login()
            await manager.login()

        (state_a, challenge_a), (state_b, challenge_b) = acquirer.calls
        assert state_a != state_b
        assert challenge_a != challenge_b


class TestGetValidToken:
    """Tests for token retrieval with silent refresh."""

    async def test_not_authenticated(self, storage: TokenStorage) -> None:
        with pytest.raises(NotAuthenticated):
            await TokenManager(storage=storage, refresher=StubRefresher()).get_valid_token()

    async def test_fresh_token_used_as_is(self, storage: TokenStorage, make_jwt: Callable[..., str]) -> None:
        stored = token_set_from_jwt(make_jwt(lifetime=300))
        storage.save_tokens(stored)
        refresher = StubRefresher()

        token = await TokenManager(storage=storage, refresher=refresher).get_valid_token()

        assert token == stored.access_token
        assert refresher.calls == 0

    async def test_refreshes_inside_window(self, storage: TokenStorage, make_jwt: Callable[..., str]) -> None:
        storage.save_tokens(token_set_from_jwt(make_jwt(lifetime=10)))
        renewed = token_set_from_jwt(make_jwt(lifetime=300, jti="renewed"))
        refresher = StubRefresher(result=renewed)

        token = await TokenManager(storage=storage, refresher=refresher).get_valid_token()

        assert token == renewed.access_token
        assert refresher.calls == 1
        assert storage.load_tokens() == renewed

    async def test_session_expired_propagates(self, storage: TokenStorage, make_jwt: Callable[..., str]) -> None:
        stale = token_set_from_jwt(make_jwt(lifetime=-60))
        storage.save_tokens(stale)
        manager = TokenManager(storage=storage, refresher=StubRefresher(error=SessionExpired()))

        with pytest.raises(SessionExpired):
            await manager.get_valid_token()
        assert storage.load_tokens() == stale

    async def test_auth_headers(self, storage: TokenStorage, make_jwt: Callable[..., str]) -> None:
        stored = token_set_from_jwt(make_jwt())
        storage.save_tokens(stored)
        headers = await TokenManager(storage=storage).auth_headers()
        assert headers == {"Authorization": f"Bearer {stored.access_token}"}

    async def test_authenticated_client(self, storage: TokenStorage, make_jwt: Callable[..., str]) -> None:
        stored = token_set_from_jwt(make_jwt())
        storage.save_tokens(stored)
        client = await TokenManager(storage=storage).authenticated_client(headers={"Accept": "application/json"})
        async with client:
            assert client.headers["Authorization"] == f"Bearer {stored.access_token}"
            assert client.headers["Accept"] == "application/json"


class TestImportAndClear:
    """Tests for manual token import and removal."""

    def test_import_token_warns(
        self, storage: TokenStorage, make_jwt: Callable[..., str], caplog: pytest.LogCaptureFixture
    ) -> None:
        manager = TokenManager(storage=storage)
        token = make_jwt()
        with caplog.at_level(logging.WARNING, logger="bahn_auth.token_manager"):
            tokens = manager.import_token(f"  {token}\n")
        assert tokens.access_token == token
        assert storage.load_tokens() == tokens
        assert "not verified" in caplog.text

    def test_import_rejects_garbage(self, storage: TokenStorage) -> None:
        with pytest.raises(ClaimsDecodeFailure):
            TokenManager(storage=storage).import_token("not-a-jwt")
        assert storage.load_tokens() is None

    def test_clear_and_is_authenticated(self, storage: TokenStorage, make_jwt: Callable[..., str]) -> None:
        manager = TokenManager(storage=storage)
        manager.save_tokens(token_set_from_jwt(make_jwt()))
        assert manager.is_authenticated()
        manager.clear_tokens()
        assert not manager.is_authenticated()
        manager.clear_tokens()

    def test_expired_token_is_not_authenticated(self, storage: TokenStorage) -> None:
        past = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=1)
        storage.save_tokens(TokenSet(access_token="a.b.c", expires_at=past))
        assert not TokenManager(storage=storage).is_authenticated()
