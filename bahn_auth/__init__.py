"""
bahn.de OIDC authentication module
"""
from .errors import (
    AuthError,
    PKCEGenerationFailure,
    AuthorizationDenied,
    StateMismatch,
    CallbackTimeout,
    CallbackError,
    AcquirerUnavailable,
    TokenExchangeFailure,
    ClaimsDecodeFailure,
    SessionExpired,
    NotAuthenticated,
    StorageFailure,
    NetworkFailure,
    EXIT_OK,
    EXIT_FAILURE,
    EXIT_AUTH_REQUIRED,
    EXIT_NETWORK,
    exit_code_for,
)
from .pkce import PKCEPair, generate_pkce, create_state
from .authorization import AuthorizationFlow, build_authorization_url, create_authorization_flow
from .fragment import CallbackParams, parse_fragment_params, parse_redirect_location
from .models import AuthorizationGrant, Claims, TokenSet
from .jwt_utils import decode_jwt, parse_claims, token_set_from_jwt
from .token_exchange import TokenResponse, exchange_code_for_tokens
from .callback_server import BridgeCallbackServer
from .acquirers import (
    CallbackAcquirer,
    LoopbackBridgeAcquirer,
    ManualPasteAcquirer,
    FallbackAcquirer,
    select_acquirer,
)
from .storage import TokenStorage
from .cookies import SessionCookieSource, StaticCookieSource, JsonFileCookieSource
from .silent_refresh import SilentRefresher
from .token_manager import TokenManager

__all__ = [
    # Errors
    "AuthError",
    "PKCEGenerationFailure",
    "AuthorizationDenied",
    "StateMismatch",
    "CallbackTimeout",
    "CallbackError",
    "AcquirerUnavailable",
    "TokenExchangeFailure",
    "ClaimsDecodeFailure",
    "SessionExpired",
    "NotAuthenticated",
    "StorageFailure",
    "NetworkFailure",
    "EXIT_OK",
    "EXIT_FAILURE",
    "EXIT_AUTH_REQUIRED",
    "EXIT_NETWORK",
    "exit_code_for",
    # PKCE / Authorization
    "PKCEPair",
    "generate_pkce",
    "create_state",
    "AuthorizationFlow",
    "build_authorization_url",
    "create_authorization_flow",
    # Callbacks
    "CallbackParams",
    "parse_fragment_params",
    "parse_redirect_location",
    "BridgeCallbackServer",
    "CallbackAcquirer",
    "LoopbackBridgeAcquirer",
    "ManualPasteAcquirer",
    "FallbackAcquirer",
    "select_acquirer",
    # Tokens
    "AuthorizationGrant",
    "Claims",
    "TokenSet",
    "decode_jwt",
    "parse_claims",
    "token_set_from_jwt",
    "TokenResponse",
    "exchange_code_for_tokens",
    # Storage / refresh
    "TokenStorage",
    "SessionCookieSource",
    "StaticCookieSource",
    "JsonFileCookieSource",
    "SilentRefresher",
    "TokenManager",
]
