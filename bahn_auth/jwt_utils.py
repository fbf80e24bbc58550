"""
JWT payload parsing (no signature verification)

Tokens handled here come straight from the realm's token endpoint over a
connection this client opened, so only the claims are read. Anything that
accepts a JWT from another channel must verify it first.
"""
import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional

from .errors import ClaimsDecodeFailure
from .models import Claims, TokenSet

logger = logging.getLogger(__name__)


def decode_jwt(token: str) -> Dict[str, Any]:
    """
    Decode the payload segment of a JWT.

    Args:
        token: Compact JWT (header.payload.signature)

    Returns:
        Decoded payload as dictionary

    Raises:
        ClaimsDecodeFailure: Wrong segment count, bad base64 or bad JSON
    """
    parts = (token or "").split(".")
    if len(parts) != 3:
        raise ClaimsDecodeFailure(f"invalid JWT: expected 3 parts, got {len(parts)}")

    # JWT uses base64url without padding
    payload = parts[1]
    payload += "=" * (-len(payload) % 4)

    try:
        decoded = base64.urlsafe_b64decode(payload.encode("ascii"))
    except (binascii.Error, ValueError) as e:
        raise ClaimsDecodeFailure(f"invalid JWT payload: {e}") from e

    try:
        data = json.loads(decoded.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ClaimsDecodeFailure(f"invalid JWT claims: {e}") from e

    if not isinstance(data, dict):
        raise ClaimsDecodeFailure("invalid JWT claims: payload is not an object")
    return data


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def parse_claims(token: str) -> Claims:
    """Decode a JWT into the typed claim set"""
    payload = decode_jwt(token)
    groups = payload.get("groups")
    return Claims(
        exp=_as_int(payload.get("exp")),
        iat=_as_int(payload.get("iat")),
        sub=_as_str(payload.get("sub")),
        kundenkontoid=_as_str(payload.get("kundenkontoid")),
        preferred_username=_as_str(payload.get("preferred_username")),
        scope=_as_str(payload.get("scope")),
        groups=[g for g in groups if isinstance(g, str)] if isinstance(groups, list) else [],
    )


def token_set_from_jwt(access_token: str, id_token: Optional[str] = None) -> TokenSet:
    """
    Create a TokenSet from a raw JWT access token.

    Raises:
        ClaimsDecodeFailure: If the token is malformed or has no numeric exp
    """
    claims = parse_claims(access_token)
    if claims.exp is None:
        raise ClaimsDecodeFailure("invalid JWT claims: missing exp")

    try:
        token_set = TokenSet.from_claims(access_token, claims, id_token=id_token)
    except (OverflowError, OSError, ValueError) as e:
        raise ClaimsDecodeFailure(f"invalid JWT claims: exp out of range ({e})") from e
    logger.debug(f"Parsed access token for sub={claims.sub!r}, exp={claims.exp}")
    return token_set
