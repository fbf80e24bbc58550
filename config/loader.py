"""Configuration loader for bahn-cli

Loads configuration from multiple sources with the following priority:
1. Environment variables (highest priority)
2. .env file
3. Hardcoded defaults (lowest priority)

All variables are read with the ``BAHN_`` prefix, so ``get("TOKEN_FILE", ...)``
looks at ``BAHN_TOKEN_FILE``.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "BAHN_"
APP_DIR_NAME = "bahn-cli"


def default_config_dir() -> Path:
    """Return the per-user config directory (~/.config/bahn-cli)

    ``BAHN_CONFIG_DIR`` wins, then ``XDG_CONFIG_HOME``, then ``~/.config``.
    """
    override = os.getenv(f"{ENV_PREFIX}CONFIG_DIR")
    if override:
        return Path(override).expanduser()

    xdg = os.getenv("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / APP_DIR_NAME


class ConfigLoader:
    """Handles loading configuration from various sources"""

    def __init__(self, env_path: Optional[str] = None):
        """Initialize the config loader

        Args:
            env_path: Optional path to .env file.
                     Defaults to '.env' in the current directory.
        """
        self.env_path = Path(env_path) if env_path else Path(".env")
        self._load_env_file()

    def _load_env_file(self):
        """Load environment variables from .env file if it exists"""
        if self.env_path.exists():
            # Real environment variables keep priority over the file
            load_dotenv(dotenv_path=self.env_path, override=False)
            logger.debug(f"Loaded environment variables from {self.env_path}")
        else:
            logger.debug(f".env file not found at {self.env_path}, using environment variables and defaults only")

    def get(self, name: str, default: Any) -> Any:
        """Get a configuration value with priority: env > default

        Args:
            name: Variable name without the BAHN_ prefix
            default: Default value if not found in environment

        Returns:
            The configuration value from environment or default, coerced to
            the type of ``default`` for bool/int/float defaults
        """
        env_var = f"{ENV_PREFIX}{name}"
        env_value = os.getenv(env_var)
        if env_value is not None:
            if isinstance(default, bool):
                return env_value.strip().lower() in ("true", "1", "yes", "on")
            elif isinstance(default, int):
                try:
                    return int(env_value)
                except ValueError:
                    logger.warning(f"Failed to parse {env_var}={env_value} as int, using default: {default}")
                    return default
            elif isinstance(default, float):
                try:
                    return float(env_value)
                except ValueError:
                    logger.warning(f"Failed to parse {env_var}={env_value} as float, using default: {default}")
                    return default
            return _expand_home(env_value)

        return _expand_home(default)


def _expand_home(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("~/"):
        return str(Path(value).expanduser())
    return value


_config_loader = None


def get_config_loader() -> ConfigLoader:
    """Get or create the global ConfigLoader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader
