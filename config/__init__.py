"""Configuration management package for the secure API client"""

from .loader import ConfigLoader, get_config_loader
from .base_url import (
    DEFAULT_DEV_API_URL,
    BaseUrlResolver,
    ConfigurationError,
    is_internal_host,
    validate_api_url,
)

__all__ = [
    "ConfigLoader",
    "get_config_loader",
    "DEFAULT_DEV_API_URL",
    "BaseUrlResolver",
    "ConfigurationError",
    "is_internal_host",
    "validate_api_url",
]
