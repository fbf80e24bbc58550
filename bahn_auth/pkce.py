"""PKCE (Proof Key for Code Exchange) generation"""

import base64
import hashlib
import secrets
from typing import NamedTuple

from .errors import PKCEGenerationFailure

# 96 random bytes -> 128 character base64url verifier (RFC 7636 maximum)
VERIFIER_BYTES = 96
STATE_LENGTH = 32
CHALLENGE_METHOD = "S256"


class PKCEPair(NamedTuple):
    """PKCE code verifier and challenge pair (single use, never persisted)"""
    verifier: str
    challenge: str
    method: str = CHALLENGE_METHOD


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_code_challenge(verifier: str) -> str:
    """Return base64url(SHA-256(verifier)) without padding"""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return _b64url(digest)


def generate_pkce() -> PKCEPair:
    """
    Generate PKCE code verifier and challenge.

    Returns:
        PKCEPair with an S256 challenge

    Raises:
        PKCEGenerationFailure: If the OS random source is unavailable
    """
    try:
        random_bytes = secrets.token_bytes(VERIFIER_BYTES)
    except (OSError, NotImplementedError) as e:
        raise PKCEGenerationFailure(f"PKCE generation failed: {e}") from e

    verifier = _b64url(random_bytes)
    return PKCEPair(verifier=verifier, challenge=generate_code_challenge(verifier))


def create_state() -> str:
    """
    Generate random state parameter for CSRF protection.

    Returns:
        str: 32 URL-safe characters
    """
    try:
        return secrets.token_urlsafe(STATE_LENGTH)[:STATE_LENGTH]
    except (OSError, NotImplementedError) as e:
        raise PKCEGenerationFailure(f"state generation failed: {e}") from e
