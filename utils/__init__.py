"""Shared utilities package for the secure API client"""

from .jwt_utils import expiry_from_claims, parse_jwt_claims
from .secure_logger import (
    SecureLogger,
    is_sensitive_key,
    sanitize_error,
    sanitize_object,
)

__all__ = [
    "expiry_from_claims",
    "parse_jwt_claims",
    "SecureLogger",
    "is_sensitive_key",
    "sanitize_error",
    "sanitize_object",
]
