"""
Local bridge server for fragment-mode OAuth callbacks

The realm returns the code after '#', which browsers never send to a
server. ``/callback`` therefore serves a small page that reads
``location.hash`` and calls ``/exchange`` on the same server with the
values as ordinary query parameters.
"""
import asyncio
import html
import logging
import socket
from typing import Optional

from aiohttp import web

import settings
from .errors import AcquirerUnavailable, CallbackTimeout
from .fragment import CallbackParams

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"
EXCHANGE_PATH = "/exchange"

BRIDGE_HTML = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>bahn-cli</title></head>
<body>
<p>Authenticating...</p>
<script>
const params = new URLSearchParams(location.hash.slice(1));
const code = params.get('code');
const state = params.get('state');
const error = params.get('error');
const errorDesc = params.get('error_description');
let url = '/exchange?';
if (error) {
  url += 'error=' + encodeURIComponent(error) + '&error_description=' + encodeURIComponent(errorDesc || '');
} else if (code) {
  url += 'code=' + encodeURIComponent(code) + '&state=' + encodeURIComponent(state || '');
} else {
  url += 'error=no_code&error_description=' + encodeURIComponent('No authorization code in response');
}
fetch(url).then(function (r) { return r.text(); }).then(function (body) {
  document.open(); document.write(body); document.close();
}).catch(function () {});
</script>
</body></html>
"""

SUCCESS_HTML = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>bahn-cli</title></head>
<body>
<p>&#10003; Authentication successful. You can close this tab.</p>
</body></html>
"""

ERROR_HTML = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>bahn-cli</title></head>
<body>
<h1>Authentication Failed</h1>
<p>Error: {error}</p>
<p>{description}</p>
<p>You can close this window.</p>
</body></html>
"""


class BridgeCallbackServer:
    """Loopback listener owned by exactly one login attempt

    Use as an async context manager; the listener is torn down on exit
    whichever outcome ended the wait.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,
        shutdown_timeout: Optional[float] = None,
    ):
        self.host = host
        self.port = port
        self.shutdown_timeout = (
            settings.CALLBACK_SHUTDOWN_TIMEOUT if shutdown_timeout is None else shutdown_timeout
        )
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self._result: Optional[asyncio.Future] = None

        self.app.router.add_get(CALLBACK_PATH, self._handle_callback)
        self.app.router.add_get(EXCHANGE_PATH, self._handle_exchange)

    @property
    def redirect_uri(self) -> str:
        if self.runner is None:
            raise RuntimeError("callback server is not running")
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}{CALLBACK_PATH}"

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Serve the bridge page that forwards the fragment"""
        return web.Response(text=BRIDGE_HTML, content_type="text/html")

    async def _handle_exchange(self, request: web.Request) -> web.Response:
        """Receive code/state (or error) relayed by the bridge page"""
        params = CallbackParams.from_mapping(request.query)
        accepted = self._deliver(params)
        if not accepted:
            logger.debug("Ignoring extra callback after the first one was accepted")

        if params.error:
            logger.info(f"Provider reported error on callback: {params.error}")
            body = ERROR_HTML.format(
                error=html.escape(params.error),
                description=html.escape(params.error_description or ""),
            )
            return web.Response(text=body, content_type="text/html", status=400)

        return web.Response(text=SUCCESS_HTML, content_type="text/html")

    def _deliver(self, params: CallbackParams) -> bool:
        """Hand the first result to the waiting attempt; later ones are dropped"""
        if self._result is None or self._result.done():
            return False
        self._result.set_result(params)
        return True

    async def start(self) -> None:
        """Bind the listener and start serving"""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise AcquirerUnavailable(f"cannot listen on {self.host}:{self.port}: {e}") from e
        self.port = sock.getsockname()[1]

        self._result = asyncio.get_running_loop().create_future()
        self.runner = web.AppRunner(self.app, access_log=None)
        await self.runner.setup()
        site = web.SockSite(self.runner, sock)
        try:
            await site.start()
        except OSError as e:
            await self.stop()
            raise AcquirerUnavailable(f"cannot serve on {self.host}:{self.port}: {e}") from e

        logger.info(f"OAuth callback server listening on {self.host}:{self.port}")

    async def wait_for_callback(self, timeout: Optional[float] = None) -> CallbackParams:
        """
        Wait for the bridge page to report back.

        Args:
            timeout: Maximum time to wait in seconds (default settings.CALLBACK_TIMEOUT)

        Raises:
            CallbackTimeout: If nothing arrived in time
        """
        if self._result is None:
            raise RuntimeError("callback server is not running")
        limit = settings.CALLBACK_TIMEOUT if timeout is None else timeout
        try:
            return await asyncio.wait_for(asyncio.shield(self._result), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning(f"OAuth callback timeout after {limit} seconds")
            # Close the channel so a late callback is never accepted
            if not self._result.done():
                self._result.cancel()
            raise CallbackTimeout(limit) from None

    async def stop(self) -> None:
        """Stop the callback server within the shutdown bound"""
        if self._result is not None and not self._result.done():
            self._result.cancel()
        runner, self.runner = self.runner, None
        if runner is None:
            return
        try:
            await asyncio.wait_for(runner.cleanup(), timeout=self.shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Callback server did not shut down within {self.shutdown_timeout}s")
        logger.debug("OAuth callback server stopped")

    async def __aenter__(self) -> "BridgeCallbackServer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
