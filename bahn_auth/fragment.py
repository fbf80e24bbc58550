"""Parsing of fragment-style authorization responses"""

import hmac
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import parse_qs, urlsplit

from .errors import AuthorizationDenied, CallbackError, StateMismatch


@dataclass(frozen=True)
class CallbackParams:
    """Parameters the provider appended to the redirect target"""
    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None

    @classmethod
    def from_mapping(cls, params: Mapping[str, str]) -> "CallbackParams":
        """Build from a flat mapping such as aiohttp's request.query"""
        return cls(
            code=params.get("code") or None,
            state=params.get("state"),
            error=params.get("error") or None,
            error_description=params.get("error_description") or None,
        )

    def raise_for_error(self) -> None:
        """Raise AuthorizationDenied if the provider reported an error"""
        if self.error:
            raise AuthorizationDenied(self.error, self.error_description)

    def verify_state(self, expected_state: str) -> None:
        """Reject a response that does not echo ``expected_state``

        Runs regardless of whether a code is present.
        """
        if not self.state or not hmac.compare_digest(self.state, expected_state):
            raise StateMismatch()


def _first_values(query: str) -> dict:
    parsed = parse_qs(query, keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items() if values}


def parse_fragment_params(raw: str) -> CallbackParams:
    """
    Extract code/state (or error) from a redirect URL fragment.

    Accepts either a full URL (``https://host/path#code=...&state=...``) or
    just the fragment (``code=...&state=...``).

    Raises:
        CallbackError: If the input carries neither a code nor an error
    """
    text = (raw or "").strip()
    if "#" in text:
        fragment = text.split("#", 1)[1]
    else:
        # Maybe they just pasted the fragment part
        fragment = text

    params = CallbackParams.from_mapping(_first_values(fragment))
    if not params.code and not params.error:
        raise CallbackError(
            "no auth code found in URL. Make sure you copied the full URL including the # part"
        )
    return params


def parse_redirect_location(location: str) -> CallbackParams:
    """
    Parse a ``Location`` header from the authorization endpoint.

    The fragment is authoritative (response_mode=fragment); some error
    redirects put their parameters in the query string instead.
    """
    parts = urlsplit(location)
    for candidate in (parts.fragment, parts.query):
        if not candidate:
            continue
        params = CallbackParams.from_mapping(_first_values(candidate))
        if params.code or params.error:
            return params
    raise CallbackError("redirect carried no authorization code or error")
