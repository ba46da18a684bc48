"""Error taxonomy surfaced by the request pipeline

Every failure leaving ApiClient is one of these. Each variant carries a fixed
`code`; HttpError may take a more specific code from the server's error body.
"""

from typing import Any, Dict, Optional

import httpx


class ApiError(Exception):
    """Base API error

    Attributes:
        code: Machine-readable error code
        message: Human readable message
        status_code: HTTP (or HTTP-like) status, if any
        details: Extra structured information
    """

    code = "UNKNOWN"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if code:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.details:
            data["details"] = self.details
        return data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, status_code={self.status_code!r}, message={self.message!r})"


class HttpError(ApiError):
    """The server answered with a non-2xx status"""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status_code=status_code, details=details, code=code or f"HTTP_{status_code}")

    @classmethod
    def from_response(cls, response: httpx.Response, data: Any) -> "HttpError":
        """Build an error from a response and its decoded body

        Fields of a JSON error body are used only when they have the
        expected type; anything else falls back to the status line.
        """
        message = response.reason_phrase or f"HTTP {response.status_code}"
        code = None
        details = None

        if isinstance(data, dict):
            if isinstance(data.get("message"), str) and data["message"]:
                message = data["message"]
            if isinstance(data.get("code"), str) and data["code"]:
                code = data["code"]
            if isinstance(data.get("details"), dict):
                details = data["details"]

        return cls(response.status_code, message, code=code, details=details)


class RequestTimeoutError(ApiError):
    """The client-side deadline passed before the response arrived"""

    code = "TIMEOUT"

    def __init__(self, message: str = "Request timeout", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=408, details=details)


class RateLimitedError(ApiError):
    """HTTP 429 persisted after local retries were exhausted"""

    code = "RATE_LIMITED"

    def __init__(
        self,
        retry_after: Optional[int] = None,
        endpoint: Optional[str] = None,
        method: Optional[str] = None,
        message: str = "Too many requests. Please wait and try again.",
    ):
        super().__init__(
            message,
            status_code=429,
            details={"retry_after_seconds": retry_after, "endpoint": endpoint, "method": method},
        )

    @property
    def retry_after(self) -> Optional[int]:
        return self.details.get("retry_after_seconds")


class CsrfTokenMissingError(ApiError):
    """A state-changing request had no anti-forgery token in production"""

    code = "CSRF_TOKEN_MISSING"

    def __init__(
        self,
        message: str = "CSRF token is required for this operation. Please refresh the page and try again.",
    ):
        super().__init__(message, status_code=403)


class UnknownApiError(ApiError):
    """Any failure that fits no other variant (transport errors, bad payloads)"""

    code = "UNKNOWN"

    def __init__(
        self,
        message: str = "Request failed",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status_code=status_code, details=details)
