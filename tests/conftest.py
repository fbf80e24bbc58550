"""Shared test fixtures for bahn-cli."""

import base64
import json
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

import settings

TEST_USERNAME = "max.mustermann@example.com"
TEST_ACCOUNT = "kk-123456"
TEST_SUB = "3f1c9a2e-0000-4000-8000-000000000001"


def _b64url_json(data: dict[str, Any]) -> str:
    raw = json.dumps(data).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def build_jwt(lifetime: int = 300, **claims: Any) -> str:
    """Unsigned JWT shaped like the realm's access tokens."""
    now = int(time.time())
    payload: dict[str, Any] = {
        "exp": now + lifetime,
        "iat": now,
        "sub": TEST_SUB,
        "kundenkontoid": TEST_ACCOUNT,
        "preferred_username": TEST_USERNAME,
        "scope": "openid vendo",
    }
    payload.update(claims)
    header = _b64url_json({"alg": "RS256", "typ": "JWT"})
    return f"{header}.{_b64url_json(payload)}.c2lnbmF0dXJl"


@pytest.fixture
def make_jwt() -> Callable[..., str]:
    """Factory for test access tokens."""
    return build_jwt


@pytest.fixture(autouse=True)
def _isolated_files(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Point every credentials file into the test's tmp dir."""
    monkeypatch.setattr(settings, "TOKEN_FILE", str(tmp_path / "config" / "tokens.json"))
    monkeypatch.setattr(settings, "COOKIE_FILE", str(tmp_path / "config" / "session_cookies.json"))
    monkeypatch.setattr(settings, "LOGIN_MODE", "auto")
    monkeypatch.setattr(settings, "LOOPBACK_ALLOWED", False)
