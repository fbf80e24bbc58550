"""
Authorization URL construction for the bahn.de Keycloak realm
"""
from typing import NamedTuple, Optional
from urllib.parse import urlencode

import settings
from .pkce import CHALLENGE_METHOD, PKCEPair, create_state, generate_pkce


class AuthorizationFlow(NamedTuple):
    """Everything one login or refresh attempt needs to remember"""
    pkce: PKCEPair
    state: str
    redirect_uri: str
    url: str


def build_authorization_url(
    redirect_uri: str,
    state: str,
    challenge: str,
    prompt: Optional[str] = None,
    base_url: Optional[str] = None,
    client_id: Optional[str] = None,
    scope: Optional[str] = None,
) -> str:
    """
    Build the authorization endpoint URL.

    Pure function: the same arguments always give the same string, since
    query keys are emitted in sorted order.

    Args:
        redirect_uri: Where the provider sends the browser afterwards
        state: Anti-CSRF value echoed back by the provider
        challenge: PKCE S256 challenge
        prompt: Optional OIDC prompt value ("none" for silent refresh)
        base_url: Override of settings.KEYCLOAK_BASE_URL
        client_id: Override of settings.CLIENT_ID
        scope: Override of settings.SCOPES

    Returns:
        str: Fully-formed authorization URL
    """
    params = {
        "client_id": client_id or settings.CLIENT_ID,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        # The code comes back after '#', never in the query string
        "response_mode": "fragment",
        "scope": scope or settings.SCOPES,
        "state": state,
        "code_challenge": challenge,
        "code_challenge_method": CHALLENGE_METHOD,
    }
    if prompt:
        params["prompt"] = prompt

    base = (base_url or settings.KEYCLOAK_BASE_URL).rstrip("/")
    return f"{base}/auth?{urlencode(sorted(params.items()))}"


def create_authorization_flow(redirect_uri: str, prompt: Optional[str] = None) -> AuthorizationFlow:
    """
    Create a fresh authorization attempt.

    Generates PKCE pair, state and the authorization URL for ``redirect_uri``.
    """
    pkce = generate_pkce()
    state = create_state()
    url = build_authorization_url(redirect_uri, state, pkce.challenge, prompt=prompt)
    return AuthorizationFlow(pkce=pkce, state=state, redirect_uri=redirect_uri, url=url)
