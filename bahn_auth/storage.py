"""Token storage for bahn.de credentials"""

import json
import logging
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

import settings
from .errors import StorageFailure
from .models import TokenSet

logger = logging.getLogger(__name__)


class TokenStorage:
    """Owner-only persistence of the current TokenSet

    The file is replaced as a whole on every save; concurrent writers from
    several processes get the filesystem's rename semantics and nothing more.
    """

    def __init__(self, token_file: Optional[str] = None):
        self.token_path = Path(token_file if token_file else settings.TOKEN_FILE)

    def _ensure_secure_directory(self):
        """Create parent directory with secure permissions"""
        parent_dir = self.token_path.parent
        if not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)
            if platform.system() != "Windows":
                os.chmod(parent_dir, 0o700)

    def save_tokens(self, tokens: TokenSet) -> None:
        """Write the token set atomically with 0600 permissions

        Raises:
            StorageFailure: If the directory or file cannot be written
        """
        try:
            self._ensure_secure_directory()
            # mkstemp creates the file 0600, so the secret is never world-readable
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.token_path.name}.", suffix=".tmp", dir=str(self.token_path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fp:
                    json.dump(tokens.to_dict(), fp, indent=2)
                    fp.flush()
                    os.fsync(fp.fileno())
                os.replace(tmp_name, self.token_path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
                raise
            if platform.system() != "Windows":
                os.chmod(self.token_path, 0o600)
        except OSError as e:
            raise StorageFailure(f"failed to save tokens to {self.token_path}: {e}") from e

        logger.debug(f"Saved tokens to {self.token_path}")

    def load_tokens(self) -> Optional[TokenSet]:
        """Load the stored token set

        Returns:
            TokenSet, or None when nothing is stored

        Raises:
            StorageFailure: If the file exists but cannot be read or parsed
        """
        try:
            raw = self.token_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"No token file at {self.token_path}")
            return None
        except OSError as e:
            raise StorageFailure(f"failed to read tokens from {self.token_path}: {e}") from e

        try:
            return TokenSet.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StorageFailure(f"token file {self.token_path} is corrupt: {e}") from e

    def clear_tokens(self) -> None:
        """Remove stored tokens; an absent file counts as success

        Raises:
            StorageFailure: If the file exists but cannot be removed
        """
        try:
            self.token_path.unlink()
            logger.info("Cleared stored tokens")
        except FileNotFoundError:
            logger.debug("No stored tokens to clear")
        except OSError as e:
            raise StorageFailure(f"failed to remove {self.token_path}: {e}") from e
