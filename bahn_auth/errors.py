"""Typed failures of the authentication core and their exit codes"""

from typing import Optional

import httpx

# Exit codes:
# 0 = success
# 1 = general error
# 2 = auth required (token expired/missing, session gone, login not completed)
# 3 = network error
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_AUTH_REQUIRED = 2
EXIT_NETWORK = 3

LOGIN_HINT = "Run `bahn auth login` to sign in again."


class AuthError(Exception):
    """Base class for every failure raised by bahn_auth"""

    exit_code = EXIT_FAILURE
    kind = "auth_error"

    def __init__(self, message: str, remediation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.remediation = remediation


class PKCEGenerationFailure(AuthError):
    """The secure random source could not provide entropy"""

    kind = "pkce_generation_failure"


class AuthorizationDenied(AuthError):
    """The provider answered the authorization request with an error parameter"""

    exit_code = EXIT_AUTH_REQUIRED
    kind = "authorization_denied"

    def __init__(self, error: str, description: Optional[str] = None):
        message = f"auth error: {error}"
        if description:
            message += f" ({description})"
        super().__init__(message, remediation=LOGIN_HINT)
        self.error = error
        self.description = description


class StateMismatch(AuthError):
    """The callback echoed a different state: possible forged callback"""

    kind = "state_mismatch"

    def __init__(self, message: str = "state mismatch: possible CSRF attack"):
        super().__init__(message)


class CallbackTimeout(AuthError):
    """The user did not finish the browser login in time"""

    exit_code = EXIT_AUTH_REQUIRED
    kind = "callback_timeout"

    def __init__(self, timeout: float):
        super().__init__(
            f"login timed out after {timeout:g} seconds",
            remediation="Run `bahn auth login` again and finish the login in your browser.",
        )
        self.timeout = timeout


class CallbackError(AuthError):
    """The callback (bridge request or pasted URL) was malformed"""

    kind = "callback_error"


class AcquirerUnavailable(AuthError):
    """A callback strategy cannot run in this environment"""

    kind = "acquirer_unavailable"


class TokenExchangeFailure(AuthError):
    """The token endpoint did not hand out a token"""

    kind = "token_exchange_failure"

    def __init__(
        self,
        message: str,
        error: Optional[str] = None,
        description: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        network: bool = False,
    ):
        super().__init__(message)
        self.error = error
        self.description = description
        self.status_code = status_code
        self.body = body
        if network:
            self.exit_code = EXIT_NETWORK


class ClaimsDecodeFailure(AuthError):
    """The token is not a decodable JWT"""

    kind = "claims_decode_failure"


class SessionExpired(AuthError):
    """Silent refresh was rejected; only an interactive login can help"""

    exit_code = EXIT_AUTH_REQUIRED
    kind = "session_expired"

    def __init__(self, message: str = "identity provider session expired"):
        super().__init__(message, remediation=LOGIN_HINT)


class NotAuthenticated(AuthError):
    """No usable credentials are stored"""

    exit_code = EXIT_AUTH_REQUIRED
    kind = "not_authenticated"

    def __init__(self, message: str = "not authenticated"):
        super().__init__(
            message,
            remediation="Run `bahn auth login` or `bahn auth token <jwt>`.",
        )


class StorageFailure(AuthError):
    """Reading, writing or removing a credentials file failed"""

    kind = "storage_failure"


class NetworkFailure(AuthError):
    """The identity provider could not be reached"""

    exit_code = EXIT_NETWORK
    kind = "network_error"

    def __init__(self, message: str):
        super().__init__(message, remediation="Check your network connection and try again.")


def exit_code_for(exc: BaseException) -> int:
    """Map any exception to the process exit code callers branch on"""
    if isinstance(exc, AuthError):
        return exc.exit_code
    if isinstance(exc, httpx.TransportError):
        return EXIT_NETWORK
    return EXIT_FAILURE
