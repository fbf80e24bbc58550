"""
Silent token refresh through the provider session

The realm hands out no refresh token. A new access token is obtained by
repeating the authorization request with ``prompt=none`` and the user's
Keycloak session cookies, then reading the code out of the redirect
``Location`` instead of following it.
"""
import logging
from typing import Optional

import httpx

import settings
from .authorization import create_authorization_flow
from .cookies import JsonFileCookieSource, SessionCookieSource
from .errors import AuthorizationDenied, CallbackError, NetworkFailure, SessionExpired
from .fragment import parse_redirect_location
from .models import TokenSet
from .token_exchange import exchange_code_for_tokens

logger = logging.getLogger(__name__)

# OIDC errors meaning "a human has to log in again"
SESSION_ERRORS = frozenset({
    "login_required",
    "interaction_required",
    "consent_required",
    "account_selection_required",
})


class SilentRefresher:
    """Runs prompt=none authorization requests with replayed session cookies"""

    def __init__(
        self,
        cookie_source: Optional[SessionCookieSource] = None,
        redirect_uri: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            cookie_source: Where provider-session cookies come from
            redirect_uri: Redirect target registered for the client
            timeout: HTTP timeout in seconds (default settings.SILENT_REFRESH_TIMEOUT)
            transport: Optional httpx transport, used for both requests
        """
        self.cookie_source = cookie_source or JsonFileCookieSource()
        self.redirect_uri = redirect_uri or settings.REAL_REDIRECT_URI
        self.timeout = settings.SILENT_REFRESH_TIMEOUT if timeout is None else timeout
        self.transport = transport

    def _client(self, cookies: dict) -> httpx.AsyncClient:
        # Redirects stay unfollowed: the Location header is the payload
        return httpx.AsyncClient(
            timeout=self.timeout,
            cookies=cookies,
            follow_redirects=False,
            transport=self.transport,
        )

    async def refresh(self) -> TokenSet:
        """
        Obtain a new token set without user interaction.

        Returns:
            TokenSet

        Raises:
            SessionExpired: No cookies, a login_required-style error or any
                non-redirect answer; fall back to interactive login
            AuthorizationDenied: Any other provider error
            StateMismatch: The redirect echoed a different state
            TokenExchangeFailure: The code could not be redeemed
            NetworkFailure: The realm could not be reached
        """
        cookies = self.cookie_source.load_cookies()
        if not cookies:
            raise SessionExpired("no identity provider session cookies available")

        flow = create_authorization_flow(self.redirect_uri, prompt="none")

        async with self._client(cookies) as client:
            try:
                response = await client.get(flow.url)
            except httpx.HTTPError as e:
                raise NetworkFailure(f"silent refresh failed: {e}") from e

            if not response.is_redirect:
                logger.info(f"Silent refresh got HTTP {response.status_code} instead of a redirect")
                raise SessionExpired(f"silent refresh rejected (HTTP {response.status_code})")

            location = response.headers.get("location")
            if not location:
                raise SessionExpired("silent refresh redirect carried no Location header")

            try:
                params = parse_redirect_location(location)
            except CallbackError as e:
                raise SessionExpired(f"silent refresh redirect unusable: {e}") from e

            if params.error:
                if params.error in SESSION_ERRORS:
                    logger.info(f"Identity provider session expired ({params.error})")
                    raise SessionExpired(f"identity provider session expired ({params.error})")
                raise AuthorizationDenied(params.error, params.error_description)

            params.verify_state(flow.state)

            logger.debug("Silent refresh received a new authorization code")
            tokens = await exchange_code_for_tokens(
                params.code,
                flow.pkce.verifier,
                flow.redirect_uri,
                client=client,
            )

        token_set = tokens.to_token_set()
        logger.info("Silent refresh succeeded")
        return token_set
