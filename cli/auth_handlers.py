"""Handlers for the ``bahn auth`` commands

Each handler returns ``(payload, human_lines)`` for OutputWriter.emit and
lets failures propagate; main() turns them into messages and exit codes.
"""

from typing import Any, Dict, List, Tuple

from bahn_auth import TokenManager, TokenSet
from bahn_auth.models import format_duration, format_rfc3339

Result = Tuple[Dict[str, Any], List[str]]


def _remaining(tokens: TokenSet) -> str:
    # nearest second, half away from zero
    seconds = int(tokens.time_remaining().total_seconds() + 0.5)
    return format_duration(seconds)


def _session_payload(tokens: TokenSet) -> Dict[str, Any]:
    return {
        "status": "ok",
        "username": tokens.username,
        "kundenkontoid": tokens.account_id,
        "expiresAt": format_rfc3339(tokens.expires_at),
        "remaining": _remaining(tokens),
    }


async def handle_login(manager: TokenManager) -> Result:
    """Interactive browser login"""
    tokens = await manager.login()
    human = [
        f"✓ Authenticated as {tokens.username}",
        f"  Account: {tokens.account_id}",
        f"  Token valid for {_remaining(tokens)}",
    ]
    return _session_payload(tokens), human


def handle_status(manager: TokenManager) -> Result:
    """Current stored credential state; never touches the network"""
    tokens = manager.load_tokens()
    if tokens is None:
        return (
            {"authenticated": False},
            ["Not authenticated. Run `bahn auth login` or `bahn auth token <jwt>`."],
        )

    expired = tokens.is_expired()
    payload: Dict[str, Any] = {
        "authenticated": not expired,
        "username": tokens.username,
        "kundenkontoid": tokens.account_id,
        "sub": tokens.subject,
        "expiresAt": format_rfc3339(tokens.expires_at),
        "expired": expired,
    }
    human = [
        f"User: {tokens.username}",
        f"Account: {tokens.account_id}",
    ]
    if expired:
        human.append("Token: expired")
    else:
        payload["remaining"] = _remaining(tokens)
        human.append(f"Token: valid ({payload['remaining']} remaining)")
    return payload, human


def handle_token(manager: TokenManager, jwt: str) -> Result:
    """Store a JWT copied out of a browser session"""
    tokens = manager.import_token(jwt)
    human = [
        f"✓ Authenticated as {tokens.username}",
        f"  Token expires in {_remaining(tokens)}",
        "  Note: token has 5 min lifetime. Use `bahn auth login` for persistent auth.",
    ]
    return _session_payload(tokens), human


async def handle_refresh(manager: TokenManager) -> Result:
    """Silent refresh through the stored provider session"""
    tokens = await manager.refresh()
    human = [
        f"✓ Token refreshed for {tokens.username}",
        f"  Token valid for {_remaining(tokens)}",
    ]
    return _session_payload(tokens), human


def handle_clear(manager: TokenManager) -> Result:
    manager.clear_tokens()
    return {"status": "ok"}, ["Credentials cleared."]
