"""Data models for bahn.de authentication"""

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import settings


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def format_rfc3339(moment: datetime.datetime) -> str:
    """Render an aware datetime as RFC 3339 in UTC, second precision"""
    return moment.astimezone(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_rfc3339(value: str) -> datetime.datetime:
    """Parse an RFC 3339 timestamp (``Z`` or numeric offset) to aware UTC"""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    moment = datetime.datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    return moment.astimezone(datetime.timezone.utc)


def format_duration(seconds: int) -> str:
    """Render whole seconds the way Go prints a time.Duration: 4m59s, 1h0m0s"""
    seconds = max(int(seconds), 0)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


@dataclass(frozen=True)
class Claims:
    """JWT claims the client cares about

    Attributes:
        exp: Expiry, epoch seconds
        iat: Issued-at, epoch seconds
        sub: Subject id
        kundenkontoid: bahn.de customer account id
        preferred_username: Login name
        scope: Granted scopes, space separated
        groups: Group memberships
    """
    exp: Optional[int] = None
    iat: Optional[int] = None
    sub: str = ""
    kundenkontoid: str = ""
    preferred_username: str = ""
    scope: str = ""
    groups: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AuthorizationGrant:
    """Authorization code captured after the browser login

    Attributes:
        code: Authorization code to redeem
        state: State echoed by the provider (already verified)
        redirect_uri: Redirect target used for this attempt; the token
            request must repeat it exactly
    """
    code: str
    state: str
    redirect_uri: str


@dataclass(frozen=True)
class TokenSet:
    """Persisted credentials derived from one token response

    ``expires_at`` always comes from the access token's ``exp`` claim.
    Instances are read-only snapshots; storage owns the on-disk copy.
    """
    access_token: str
    expires_at: datetime.datetime
    id_token: Optional[str] = None
    account_id: str = ""
    subject: str = ""
    username: str = ""

    @classmethod
    def from_claims(cls, access_token: str, claims: Claims, id_token: Optional[str] = None) -> "TokenSet":
        expires_at = datetime.datetime.fromtimestamp(int(claims.exp), datetime.timezone.utc)
        return cls(
            access_token=access_token,
            expires_at=expires_at,
            id_token=id_token or None,
            account_id=claims.kundenkontoid,
            subject=claims.sub,
            username=claims.preferred_username,
        )

    def is_expired(self, now: Optional[datetime.datetime] = None) -> bool:
        """True once the clock is past the token's exp"""
        return (now or utcnow()) > self.expires_at

    def needs_refresh(self, now: Optional[datetime.datetime] = None) -> bool:
        """True when fewer than 30 seconds remain before expiry"""
        window = datetime.timedelta(seconds=settings.REFRESH_WINDOW_SECONDS)
        return (now or utcnow()) > self.expires_at - window

    def time_remaining(self, now: Optional[datetime.datetime] = None) -> datetime.timedelta:
        return self.expires_at - (now or utcnow())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk JSON shape"""
        return {
            "accessToken": self.access_token,
            "idToken": self.id_token or "",
            "expiresAt": format_rfc3339(self.expires_at),
            "kundenkontoid": self.account_id,
            "sub": self.subject,
            "username": self.username,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSet":
        """Load from the on-disk JSON shape

        Raises:
            KeyError, ValueError, TypeError: On a malformed document
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        access_token = data["accessToken"]
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("accessToken is empty")
        return cls(
            access_token=access_token,
            expires_at=parse_rfc3339(data["expiresAt"]),
            id_token=data.get("idToken") or None,
            account_id=data.get("kundenkontoid", ""),
            subject=data.get("sub", ""),
            username=data.get("username", ""),
        )
