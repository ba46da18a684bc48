"""
Production-aware logging that redacts sensitive data.

Outside production, messages and tracebacks are logged as-is. In production,
structured arguments are sanitized, exception text is replaced by a generic
message, debug output is dropped and no tracebacks are emitted.
"""
import logging
import re
from typing import Any

REDACTED = "[REDACTED]"
GENERIC_ERROR_MESSAGE = "An error occurred. Please contact support if the issue persists."

SENSITIVE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"password",
        r"token",
        r"apikey",
        r"api_key",
        r"secret",
        r"authorization",
        r"bearer",
        r"ssn",
        r"social_security",
        r"credit_card",
        r"card_number",
        r"cvv",
        r"pin",
        r"medical_record",
        r"diagnosis",
        r"prescription",
        r"health_condition",
        r"patient_data",
    )
]


def is_sensitive_key(key: str) -> bool:
    """Check if a mapping key names sensitive information"""
    return any(pattern.search(key) for pattern in SENSITIVE_PATTERNS)


def sanitize_object(obj: Any) -> Any:
    """Recursively redact values stored under sensitive keys

    Args:
        obj: Any value; dicts, lists and tuples are walked

    Returns:
        A sanitized copy (scalars are returned unchanged)
    """
    if isinstance(obj, dict):
        return {
            key: REDACTED if isinstance(key, str) and is_sensitive_key(key) else sanitize_object(value)
            for key, value in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return type(obj)(sanitize_object(item) for item in obj)
    return obj


def sanitize_error(error: Any, production: bool) -> str:
    """Render an error for logs

    Args:
        error: Exception, string or anything else
        production: Whether generic messages must replace exception text

    Returns:
        A log-safe message
    """
    if isinstance(error, BaseException):
        if production:
            return GENERIC_ERROR_MESSAGE
        return str(error) or error.__class__.__name__
    if isinstance(error, str):
        return error
    return "Unknown error"


class SecureLogger:
    """Wraps a stdlib logger with redaction rules for production"""

    def __init__(self, logger: logging.Logger, production: bool = False):
        self.logger = logger
        self.production = production

    def _render(self, message: str, args: tuple) -> str:
        if not args:
            return f"[SECURE] {message}" if self.production else message

        if self.production:
            parts = [
                sanitize_error(arg, True) if isinstance(arg, BaseException) else repr(sanitize_object(arg))
                for arg in args
            ]
            return f"[SECURE] {message} " + " ".join(parts)

        parts = [str(arg) if isinstance(arg, (BaseException, str)) else repr(arg) for arg in args]
        return f"{message} " + " ".join(parts)

    def error(self, message: str, *args: Any) -> None:
        exc = next((arg for arg in args if isinstance(arg, BaseException)), None)
        # Tracebacks only leave the process outside production
        exc_info = exc if exc is not None and not self.production else None
        self.logger.error(self._render(message, args), exc_info=exc_info)

    def warning(self, message: str, *args: Any) -> None:
        self.logger.warning(self._render(message, args))

    warn = warning

    def info(self, message: str, *args: Any) -> None:
        self.logger.info(self._render(message, args))

    def debug(self, message: str, *args: Any) -> None:
        if self.production:
            return
        self.logger.debug(self._render(message, args))
