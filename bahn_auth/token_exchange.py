"""
Authorization code redemption at the realm's token endpoint
"""
import json
import logging
from typing import Optional

import httpx

import settings
from .errors import TokenExchangeFailure
from .jwt_utils import token_set_from_jwt
from .models import TokenSet

logger = logging.getLogger(__name__)


class TokenResponse:
    """OAuth token response (the realm issues no refresh token)"""

    def __init__(
        self,
        access_token: str,
        id_token: Optional[str] = None,
        token_type: str = "Bearer",
        expires_in: Optional[int] = None,
        scope: str = "",
    ):
        self.access_token = access_token
        self.id_token = id_token
        self.token_type = token_type
        self.expires_in = expires_in
        self.scope = scope

    @classmethod
    def from_json(cls, data: dict) -> "TokenResponse":
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise TokenExchangeFailure("token exchange failed: response has no access_token")
        return cls(
            access_token=access_token,
            id_token=data.get("id_token") or None,
            token_type=data.get("token_type") or "Bearer",
            expires_in=data.get("expires_in"),
            scope=data.get("scope") or "",
        )

    def to_token_set(self) -> TokenSet:
        """Derive the persisted TokenSet; expiry comes from the JWT exp claim"""
        return token_set_from_jwt(self.access_token, id_token=self.id_token)


def _failure_from_response(response: httpx.Response) -> TokenExchangeFailure:
    body = response.text
    try:
        payload = response.json()
    except (json.JSONDecodeError, ValueError):
        payload = None

    if isinstance(payload, dict) and payload.get("error"):
        error = str(payload["error"])
        description = str(payload.get("error_description") or "")
        message = f"token exchange failed: {error}"
        if description:
            message += f" - {description}"
        return TokenExchangeFailure(
            message,
            error=error,
            description=description or None,
            status_code=response.status_code,
            body=body,
        )

    return TokenExchangeFailure(
        f"token exchange failed with status {response.status_code}: {body}",
        status_code=response.status_code,
        body=body,
    )


async def exchange_code_for_tokens(
    code: str,
    code_verifier: str,
    redirect_uri: str,
    client: Optional[httpx.AsyncClient] = None,
) -> TokenResponse:
    """
    Exchange authorization code for tokens.

    Args:
        code: Authorization code from the callback
        code_verifier: PKCE verifier of the same attempt
        redirect_uri: Redirect target used in the authorization request
        client: Optional client to send the request with

    Returns:
        TokenResponse

    Raises:
        TokenExchangeFailure: On transport errors, non-200 answers or an
            unusable body; provider error/error_description are kept verbatim
    """
    data = {
        "grant_type": "authorization_code",
        "client_id": settings.CLIENT_ID,
        "redirect_uri": redirect_uri,
        "code": code,
        "code_verifier": code_verifier,
    }
    token_url = f"{settings.KEYCLOAK_BASE_URL.rstrip('/')}/token"

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=settings.TOKEN_EXCHANGE_TIMEOUT)

    try:
        logger.debug(f"POST {token_url} (code length {len(code)})")
        response = await client.post(
            token_url,
            data=data,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
        )
    except httpx.HTTPError as e:
        raise TokenExchangeFailure(f"token exchange failed: {e}", network=True) from e
    finally:
        if owns_client:
            await client.aclose()

    if response.status_code != 200:
        failure = _failure_from_response(response)
        logger.warning(f"Token exchange rejected with HTTP {response.status_code}: {failure.error or 'no error code'}")
        raise failure

    try:
        payload = response.json()
    except (json.JSONDecodeError, ValueError) as e:
        raise TokenExchangeFailure(f"parsing token response: {e}", status_code=200, body=response.text) from e

    if not isinstance(payload, dict):
        raise TokenExchangeFailure("parsing token response: expected a JSON object", status_code=200, body=response.text)

    logger.info("Authorization code exchanged for tokens")
    return TokenResponse.from_json(payload)
