"""
Token lifecycle management: the surface the rest of bahn-cli talks to
"""
import logging
from typing import Any, Dict, Optional

import httpx

from .acquirers import CallbackAcquirer, select_acquirer
from .errors import NotAuthenticated
from .jwt_utils import token_set_from_jwt
from .models import TokenSet
from .pkce import create_state, generate_pkce
from .silent_refresh import SilentRefresher
from .storage import TokenStorage
from .token_exchange import exchange_code_for_tokens

logger = logging.getLogger(__name__)


class TokenManager:
    """Obtains, stores and renews bahn.de bearer credentials"""

    def __init__(
        self,
        storage: Optional[TokenStorage] = None,
        acquirer: Optional[CallbackAcquirer] = None,
        refresher: Optional[SilentRefresher] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            storage: Token store (default: settings.TOKEN_FILE)
            acquirer: Callback strategy for login (default: select_acquirer())
            refresher: Silent refresh engine (default: cookies from settings.COOKIE_FILE)
            http_client: Optional client for the token request of login()
        """
        self.storage = storage or TokenStorage()
        self._acquirer = acquirer
        self._refresher = refresher
        self.http_client = http_client

    @property
    def acquirer(self) -> CallbackAcquirer:
        if self._acquirer is None:
            self._acquirer = select_acquirer()
        return self._acquirer

    @property
    def refresher(self) -> SilentRefresher:
        if self._refresher is None:
            self._refresher = SilentRefresher()
        return self._refresher

    async def login(self) -> TokenSet:
        """
        Run the interactive browser login and store the result.

        Each call owns its own verifier, state and (for the loopback
        strategy) listener.
        """
        pkce = generate_pkce()
        state = create_state()

        logger.info(f"Starting interactive login ({self.acquirer.name})")
        grant = await self.acquirer.acquire(state, pkce.challenge)

        tokens = await exchange_code_for_tokens(
            grant.code,
            pkce.verifier,
            grant.redirect_uri,
            client=self.http_client,
        )
        token_set = tokens.to_token_set()
        self.save_tokens(token_set)
        logger.info(f"Logged in as {token_set.username or token_set.subject}")
        return token_set

    async def refresh(self) -> TokenSet:
        """
        Renew the access token through the provider session and store it.

        Raises:
            SessionExpired: The session is gone; call login() instead.
                Never escalates to a browser by itself.
        """
        token_set = await self.refresher.refresh()
        self.save_tokens(token_set)
        return token_set

    def import_token(self, access_token: str) -> TokenSet:
        """
        Store an access token obtained elsewhere (e.g. copied from a browser).

        The token's signature is not verified; its claims are trusted as-is.
        """
        token_set = token_set_from_jwt(access_token.strip())
        logger.warning("Storing a manually supplied token; its signature was not verified")
        self.save_tokens(token_set)
        return token_set

    def load_tokens(self) -> Optional[TokenSet]:
        return self.storage.load_tokens()

    def save_tokens(self, tokens: TokenSet) -> None:
        self.storage.save_tokens(tokens)

    def clear_tokens(self) -> None:
        self.storage.clear_tokens()

    def is_authenticated(self) -> bool:
        """True when a stored token exists and has not expired"""
        tokens = self.load_tokens()
        return tokens is not None and not tokens.is_expired()

    async def get_valid_token(self) -> str:
        """
        Return an access token with more than the refresh window left.

        Raises:
            NotAuthenticated: Nothing is stored
            SessionExpired: Silent refresh failed; interactive login needed
        """
        tokens = self.load_tokens()
        if tokens is None:
            raise NotAuthenticated("not authenticated")

        if tokens.needs_refresh():
            logger.info("Access token expires soon, attempting silent refresh...")
            tokens = await self.refresh()

        return tokens.access_token

    async def auth_headers(self) -> Dict[str, str]:
        """Per-request headers for bahn.de APIs"""
        token = await self.get_valid_token()
        return {"Authorization": f"Bearer {token}"}

    async def authenticated_client(self, **kwargs: Any) -> httpx.AsyncClient:
        """Create an httpx client carrying the bearer header

        The token is fixed at creation; with a five-minute lifetime, create
        one client per command rather than keeping it around.
        """
        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(await self.auth_headers())
        return httpx.AsyncClient(headers=headers, **kwargs)
