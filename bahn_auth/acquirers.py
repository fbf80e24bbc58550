"""
Callback acquisition strategies

Each strategy gets the user through the browser login and returns the
authorization code of that attempt. The shared checks (provider error,
state, missing code) live in CallbackAcquirer.acquire so no strategy can
skip them.
"""
import asyncio
import logging
import webbrowser
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence, Tuple

import settings
from .authorization import build_authorization_url
from .callback_server import BridgeCallbackServer
from .errors import AcquirerUnavailable, CallbackError
from .fragment import CallbackParams, parse_fragment_params
from .models import AuthorizationGrant

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]
BrowserOpener = Callable[[str], bool]
LineReader = Callable[[str], str]

LOGIN_MODES = ("auto", "loopback", "paste")


def _log_status(message: str) -> None:
    logger.info(message)


class CallbackAcquirer(ABC):
    """Obtains (code, state) after an interactive browser login

    ``on_status`` receives progress messages a caller may silence.
    ``on_prompt`` receives the messages the user has to act on (the URL to
    open by hand, paste instructions); it defaults to ``on_status``.
    """

    name = "callback"

    def __init__(
        self,
        open_browser: Optional[BrowserOpener] = None,
        on_status: Optional[StatusCallback] = None,
        on_prompt: Optional[StatusCallback] = None,
    ):
        self.open_browser = open_browser or webbrowser.open
        self.on_status = on_status or _log_status
        self.on_prompt = on_prompt or self.on_status
    async def acquire(self, state: str, challenge: str) -> AuthorizationGrant:
        """
        Run one attempt.

        Args:
            state: State generated for this attempt
            challenge: PKCE challenge of this attempt

        Returns:
            AuthorizationGrant with the code and the redirect URI used

        Raises:
            AuthorizationDenied: The provider returned an error parameter
            StateMismatch: The echoed state differs from ``state``
            CallbackError: No code came back
            CallbackTimeout: The user did not finish in time
            AcquirerUnavailable: The strategy cannot run here
        """
        params, redirect_uri = await self._receive(state, challenge)

        params.raise_for_error()
        params.verify_state(state)
        if not params.code:
            raise CallbackError("no auth code received")

        logger.debug(f"{self.name}: received authorization code (length {len(params.code)})")
        return AuthorizationGrant(code=params.code, state=params.state, redirect_uri=redirect_uri)

    @abstractmethod
    async def _receive(self, state: str, challenge: str) -> Tuple[CallbackParams, str]:
        """Return the raw callback parameters and the redirect URI used"""

    def _open(self, url: str) -> None:
        self.on_status("Opening browser for login...")
        logger.debug(f"Authorization URL: {url}")
        try:
            opened = self.open_browser(url)
        except webbrowser.Error as e:
            logger.warning(f"Could not open browser: {e}")
            opened = False
        if not opened:
            self.on_prompt("Could not open browser automatically. Please open this URL:")
            self.on_prompt(url)


class LoopbackBridgeAcquirer(CallbackAcquirer):
    """Bridge page on a per-attempt loopback listener"""

    name = "loopback"

    def __init__(
        self,
        open_browser: Optional[BrowserOpener] = None,
        on_status: Optional[StatusCallback] = None,
        timeout: Optional[float] = None,
        host: str = "127.0.0.1",
        shutdown_timeout: Optional[float] = None,
        on_prompt: Optional[StatusCallback] = None,
    ):
        super().__init__(open_browser, on_status, on_prompt)
        self.timeout = settings.CALLBACK_TIMEOUT if timeout is None else timeout
        self.host = host
        self.shutdown_timeout = shutdown_timeout

    def _create_server(self) -> BridgeCallbackServer:
        return BridgeCallbackServer(host=self.host, shutdown_timeout=self.shutdown_timeout)

    async def _receive(self, state: str, challenge: str) -> Tuple[CallbackParams, str]:
        async with self._create_server() as server:
            redirect_uri = server.redirect_uri
            url = build_authorization_url(redirect_uri, state, challenge)
            self.on_status(f"Listening for the login callback on port {server.port}")
            self._open(url)
            self.on_status("Waiting for authentication...")
            params = await server.wait_for_callback(self.timeout)
        return params, redirect_uri


class ManualPasteAcquirer(CallbackAcquirer):
    """User copies the final bahn.de URL back into the terminal

    Used when the realm rejects loopback redirect targets.
    """

    name = "paste"

    def __init__(
        self,
        open_browser: Optional[BrowserOpener] = None,
        on_status: Optional[StatusCallback] = None,
        reader: Optional[LineReader] = None,
        redirect_uri: Optional[str] = None,
        on_prompt: Optional[StatusCallback] = None,
    ):
        super().__init__(open_browser, on_status, on_prompt)
        self.reader = reader or input
        self.redirect_uri = redirect_uri or settings.REAL_REDIRECT_URI

    async def _receive(self, state: str, challenge: str) -> Tuple[CallbackParams, str]:
        url = build_authorization_url(self.redirect_uri, state, challenge)
        self._open(url)

        self.on_prompt("")
        self.on_prompt("After logging in, you'll be redirected to bahn.de.")
        self.on_prompt("Copy the FULL URL from your browser's address bar and paste it here:")
        self.on_prompt("")

        # Blocking read; keep the event loop free while the user types
        try:
            pasted = await asyncio.to_thread(self.reader, "> ")
        except EOFError:
            raise CallbackError("no input received") from None

        if not pasted or not pasted.strip():
            raise CallbackError("empty URL")

        return parse_fragment_params(pasted), self.redirect_uri


class FallbackAcquirer(CallbackAcquirer):
    """Tries strategies in order, moving on only when one is unavailable"""

    name = "fallback"

    def __init__(self, acquirers: Sequence[CallbackAcquirer]):
        if not acquirers:
            raise ValueError("FallbackAcquirer needs at least one strategy")
        first = acquirers[0]
        super().__init__(first.open_browser, first.on_status, first.on_prompt)
        self.acquirers: List[CallbackAcquirer] = list(acquirers)

    async def acquire(self, state: str, challenge: str) -> AuthorizationGrant:
        last_error: Optional[AcquirerUnavailable] = None
        for acquirer in self.acquirers:
            try:
                return await acquirer.acquire(state, challenge)
            except AcquirerUnavailable as e:
                logger.warning(f"Login strategy '{acquirer.name}' unavailable: {e}")
                last_error = e
        raise last_error

    async def _receive(self, state: str, challenge: str) -> Tuple[CallbackParams, str]:
        raise NotImplementedError("FallbackAcquirer delegates acquire() to its strategies")


def select_acquirer(
    mode: Optional[str] = None,
    loopback_allowed: Optional[bool] = None,
    open_browser: Optional[BrowserOpener] = None,
    on_status: Optional[StatusCallback] = None,
    reader: Optional[LineReader] = None,
    timeout: Optional[float] = None,
    on_prompt: Optional[StatusCallback] = None,
) -> CallbackAcquirer:
    """
    Pick the callback strategy.

    Args:
        mode: "auto", "loopback" or "paste" (default settings.LOGIN_MODE)
        loopback_allowed: Whether the realm accepts a loopback redirect
            (default settings.LOOPBACK_ALLOWED); only consulted for "auto"
        on_prompt: Receives user-facing instructions that must not be
            silenced (default ``on_status``)

    Returns:
        CallbackAcquirer
    """
    mode = (mode or settings.LOGIN_MODE).strip().lower()
    if mode not in LOGIN_MODES:
        raise ValueError(f"unknown login mode {mode!r}, expected one of {', '.join(LOGIN_MODES)}")

    if loopback_allowed is None:
        loopback_allowed = settings.LOOPBACK_ALLOWED

    paste = ManualPasteAcquirer(open_browser=open_browser, on_status=on_status, reader=reader, on_prompt=on_prompt)
    if mode == "paste":
        return paste

    loopback = LoopbackBridgeAcquirer(
        open_browser=open_browser, on_status=on_status, timeout=timeout, on_prompt=on_prompt
    )
    if mode == "loopback":
        return loopback

    if loopback_allowed:
        return FallbackAcquirer([loopback, paste])
    return paste
