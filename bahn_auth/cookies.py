"""Sources of identity-provider session cookies for silent refresh

The Keycloak session lives in the user's browser; how its cookies reach this
process is outside the core. Silent refresh only sees this interface.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Mapping, Optional

import settings
from .errors import StorageFailure

logger = logging.getLogger(__name__)


class SessionCookieSource(ABC):
    """Supplies provider-session cookies (name -> value)"""

    @abstractmethod
    def load_cookies(self) -> Dict[str, str]:
        """Return the cookies to replay; empty when no session is known"""


class StaticCookieSource(SessionCookieSource):
    """Fixed cookies, e.g. handed over by an embedding application"""

    def __init__(self, cookies: Optional[Mapping[str, str]] = None):
        self._cookies = dict(cookies or {})

    def load_cookies(self) -> Dict[str, str]:
        return dict(self._cookies)


class JsonFileCookieSource(SessionCookieSource):
    """Cookies kept in a JSON object file maintained by the user"""

    def __init__(self, cookie_file: Optional[str] = None):
        self.cookie_path = Path(cookie_file if cookie_file else settings.COOKIE_FILE)

    def load_cookies(self) -> Dict[str, str]:
        """
        Raises:
            StorageFailure: If the file exists but is not a JSON object of strings
        """
        try:
            raw = self.cookie_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"No session cookie file at {self.cookie_path}")
            return {}
        except OSError as e:
            raise StorageFailure(f"failed to read session cookies from {self.cookie_path}: {e}") from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageFailure(f"session cookie file {self.cookie_path} is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise StorageFailure(f"session cookie file {self.cookie_path} must map cookie names to strings")

        logger.debug(f"Loaded {len(data)} session cookie(s) from {self.cookie_path}")
        return data
