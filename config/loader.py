"""Configuration loader for the secure API client

Values are looked up with the following priority:
1. Environment variables (highest priority)
2. .env file
3. Hardcoded defaults (lowest priority)
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1", "yes", "on")


class ConfigLoader:
    """Reads client configuration from the hosting environment"""

    def __init__(self, env_path: Optional[str] = None):
        """Initialize the config loader

        Args:
            env_path: Optional path to .env file.
                     Defaults to '.env' in the current directory.
        """
        self.env_path = Path(env_path) if env_path else Path(".env")
        self._load_env_file()

    def _load_env_file(self):
        """Load environment variables from .env file if it exists

        Variables already present in the process environment win over the file.
        """
        if self.env_path.exists():
            load_dotenv(dotenv_path=self.env_path, override=False)
            logger.debug(f"Loaded environment variables from {self.env_path}")
        else:
            logger.debug(f".env file not found at {self.env_path}, using environment variables and defaults only")

    def get(self, env_var: str, default: Any) -> Any:
        """Get a configuration value, coerced to the type of the default

        Args:
            env_var: Environment variable name to check
            default: Default value if not found (or unparseable) in environment

        Returns:
            The configuration value from environment or default
        """
        raw = os.getenv(env_var)
        if raw is None:
            return default

        # bool must be checked before int, bool is a subclass of int
        if isinstance(default, bool):
            return raw.strip().lower() in TRUE_VALUES
        if isinstance(default, int):
            return self._coerce(env_var, raw, int, default)
        if isinstance(default, float):
            return self._coerce(env_var, raw, float, default)
        return raw

    def get_list(self, env_var: str, default: list, separator: str = " ") -> list:
        """Get a whitespace (or separator) delimited list value

        Args:
            env_var: Environment variable name to check
            default: Default list if unset
            separator: Item separator

        Returns:
            List of non-empty items
        """
        raw = os.getenv(env_var)
        if raw is None:
            return list(default)
        return [item.strip() for item in raw.split(separator) if item.strip()]

    @staticmethod
    def _coerce(env_var: str, raw: str, kind: type, default: Any) -> Any:
        try:
            return kind(raw)
        except ValueError:
            logger.warning(f"Failed to parse {env_var}={raw} as {kind.__name__}, using default: {default}")
            return default


_config_loader = None


def get_config_loader() -> ConfigLoader:
    """Get or create the shared ConfigLoader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader
