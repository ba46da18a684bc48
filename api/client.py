"""HTTP client for backend API requests

Attaches bearer and anti-forgery tokens, enforces per-request timeouts and
retries HTTP 429 responses with jittered exponential backoff. Every failure
is raised as an ApiError; only ConfigurationError escapes unwrapped.
"""

import asyncio
import json
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx
import tenacity

from auth.token_manager import CredentialManager
from config.base_url import BaseUrlResolver
from utils.secure_logger import SecureLogger
from .csrf import STATE_CHANGING_METHODS, CsrfTokenSource, no_csrf_token
from .errors import (
    CsrfTokenMissingError,
    HttpError,
    RateLimitedError,
    RequestTimeoutError,
    UnknownApiError,
)
from .retry import (
    DEFAULT_RETRY_CONFIG,
    RetryConfig,
    WaitRetryAfter,
    is_rate_limited,
    parse_retry_after,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Decides whether a request may continue without a bearer token when
# acquisition fails: (method, endpoint) -> bool
AnonymousPolicy = Callable[[str, str], bool]


def allow_anonymous(method: str, endpoint: str) -> bool:
    return True


@dataclass(frozen=True)
class RequestConfig:
    """Per-call request options

    Attributes:
        headers: Header overrides (case-insensitive, applied over defaults)
        params: Query parameters, stringified and appended to the URL
        timeout: Seconds before the call is cancelled (client default if None)
        with_auth: Attach a bearer token
        skip_rate_limit_retry: Surface the first 429 instead of retrying
    """
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)
    timeout: Optional[float] = None
    with_auth: bool = True
    skip_rate_limit_retry: bool = False


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ApiClient:
    """API client for making authenticated HTTP requests"""

    def __init__(
        self,
        credentials: Optional[CredentialManager] = None,
        base_url: Optional[str] = None,
        *,
        production: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        retry_config: RetryConfig = DEFAULT_RETRY_CONFIG,
        csrf_token_source: CsrfTokenSource = no_csrf_token,
        anonymous_policy: AnonymousPolicy = allow_anonymous,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        """
        Args:
            credentials: Bearer token source; None sends requests unauthenticated
            base_url: Configured backend base URL, validated on first use
            production: Production deployment mode (strict URL and CSRF rules, redacted logs)
            timeout: Default per-request timeout in seconds
            retry_config: Rate limit retry policy
            csrf_token_source: Returns the anti-forgery token, read on every attempt
            anonymous_policy: Whether a failed token acquisition may proceed unauthenticated
            transport: Optional httpx transport for the owned client (tests)
            http_client: Externally owned httpx client; not closed by aclose()
            sleep: Coroutine used between retries
            rand: Uniform [0, 1) source for jitter
        """
        self.credentials = credentials
        self.base_url = BaseUrlResolver(base_url, production)
        self.production = production
        self.timeout = timeout
        self.retry_config = retry_config
        self.csrf_token_source = csrf_token_source
        self.anonymous_policy = anonymous_policy
        self._sleep = sleep
        self._rand = rand
        self._log = SecureLogger(logger, production=production)

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(transport=transport)

    @property
    def cookies(self) -> httpx.Cookies:
        """Cookie jar of the underlying HTTP client"""
        return self._http.cookies

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the owned HTTP client and the credential manager's timers"""
        if self._owns_http:
            await self._http.aclose()
        if self.credentials is not None:
            await self.credentials.close()

    def build_url(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Join the endpoint to the base URL and append query parameters

        Absolute http(s) endpoints bypass the base URL.

        Raises:
            ConfigurationError: If the base URL is missing or invalid
            UnknownApiError: If the resulting URL is malformed
        """
        if endpoint.startswith(("http://", "https://")):
            raw = endpoint
        else:
            raw = f"{self.base_url.resolve()}{endpoint}"

        try:
            url = httpx.URL(raw)
            if params:
                items = list(url.params.multi_items())
                items.extend((key, _stringify(value)) for key, value in params.items())
                url = url.copy_with(params=httpx.QueryParams(items))
        except httpx.InvalidURL as e:
            raise UnknownApiError(f"Invalid request URL for endpoint {endpoint}") from e

        return str(url)

    async def build_headers(self, method: str, endpoint: str, config: RequestConfig) -> httpx.Headers:
        """Build headers for one attempt

        Tokens are fetched fresh each time so retries pick up renewed
        credentials and rotated anti-forgery tokens.

        Raises:
            CsrfTokenMissingError: State-changing request without token in production
            UnknownApiError: Token acquisition failed and the anonymous policy forbids continuing
        """
        headers = httpx.Headers({"Content-Type": "application/json"})
        headers.update(config.headers)

        if config.with_auth:
            await self._attach_bearer(headers, method, endpoint)

        if method in STATE_CHANGING_METHODS:
            csrf_token = self.csrf_token_source()
            if csrf_token:
                headers["X-CSRF-Token"] = csrf_token
            elif self.production:
                raise CsrfTokenMissingError()
            else:
                self._log.warning(
                    f"CSRF token missing for {method} request. This request would be BLOCKED in production. "
                    "Configure a CSRF token source (CSRF_TOKEN or the XSRF-TOKEN cookie)."
                )

        return headers

    async def _attach_bearer(self, headers: httpx.Headers, method: str, endpoint: str) -> None:
        error: Optional[Exception] = None
        if self.credentials is not None:
            try:
                token = await self.credentials.get_access_token()
            except Exception as e:
                error = e
            else:
                headers["Authorization"] = f"Bearer {token}"
                return

        if not self.anonymous_policy(method, endpoint):
            raise UnknownApiError(
                "Authentication required",
                status_code=401,
                details={"endpoint": endpoint, "method": method},
            ) from error

        if error is not None:
            self._log.warning("Failed to get access token, continuing unauthenticated:", error)
        else:
            logger.debug(f"No credential manager configured, sending {method} {endpoint} unauthenticated")

    @staticmethod
    def _encode_body(body: Any) -> Optional[bytes]:
        if body is None:
            return None
        if isinstance(body, bytes):
            return body
        if isinstance(body, str):
            return body.encode("utf-8")
        try:
            return json.dumps(body).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise UnknownApiError(f"Request body is not JSON serializable: {e}") from e

    async def _send(
        self,
        method: str,
        url: str,
        endpoint: str,
        headers: httpx.Headers,
        content: Optional[bytes],
        timeout: float,
    ) -> httpx.Response:
        try:
            # wait_for cancels only this call; other requests and the shared token refresh are unaffected
            return await asyncio.wait_for(
                self._http.request(method, url, headers=headers, content=content, timeout=timeout),
                timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(details={"endpoint": endpoint, "method": method, "timeout": timeout}) from e
        except httpx.HTTPError as e:
            self._log.error(f"Network error on {method} {endpoint}:", e)
            raise UnknownApiError(
                "Network request failed",
                details={"endpoint": endpoint, "method": method},
            ) from e
        except Exception as e:
            self._log.error(f"Unexpected transport failure on {method} {endpoint}:", e)
            raise UnknownApiError(
                "Network request failed",
                details={"endpoint": endpoint, "method": method},
            ) from e

    def _handle_response(self, response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        is_json = "application/json" in content_type

        if is_json and response.content:
            try:
                data = response.json()
            except ValueError as e:
                if response.is_success:
                    raise UnknownApiError("Malformed JSON response", status_code=response.status_code) from e
                data = response.text
        elif is_json:
            data = None
        else:
            data = response.text

        if not response.is_success:
            error = HttpError.from_response(response, data)
            logger.debug(f"Request failed: {error.code} ({response.status_code})")
            raise error

        return data

    async def request(
        self,
        method: str,
        endpoint: str,
        config: Optional[RequestConfig] = None,
        body: Any = None,
    ) -> Any:
        """Make an HTTP request with timeout and rate limit handling

        Args:
            method: HTTP method
            endpoint: Path under the base URL, or an absolute URL
            config: Per-call options
            body: JSON-serializable payload (str/bytes are sent as-is)

        Returns:
            Decoded JSON payload, or the response text for non-JSON bodies

        Raises:
            ApiError: For every request failure
            ConfigurationError: If the base URL configuration is unusable
        """
        config = config or RequestConfig()
        method = method.upper()
        timeout = config.timeout or self.timeout
        max_retries = 0 if config.skip_rate_limit_retry else self.retry_config.max_retries

        if self._http.is_closed:
            raise UnknownApiError("API client is closed", details={"endpoint": endpoint, "method": method})

        url = self.build_url(endpoint, config.params)
        content = self._encode_body(body)

        def log_retry(retry_state: tenacity.RetryCallState) -> None:
            self._log.warning(
                f"Rate limit hit on {method} {endpoint}. "
                f"Attempt {retry_state.attempt_number}/{max_retries + 1}. "
                f"Retrying in {retry_state.next_action.sleep:.1f}s..."
            )

        # Exceptions from an attempt are never retried; only 429 responses are
        retrying = tenacity.AsyncRetrying(
            stop=tenacity.stop_after_attempt(max_retries + 1),
            wait=WaitRetryAfter(self.retry_config, self._rand),
            retry=tenacity.retry_if_result(is_rate_limited),
            sleep=self._sleep,
            before_sleep=log_retry,
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
        )
        response = await retrying(self._attempt, method, url, endpoint, config, content, timeout)

        if is_rate_limited(response):
            self._log.warning(f"Rate limit retries exhausted on {method} {endpoint} after {max_retries + 1} attempt(s)")
            raise RateLimitedError(
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                endpoint=endpoint,
                method=method,
            )

        return self._handle_response(response)

    async def _attempt(
        self,
        method: str,
        url: str,
        endpoint: str,
        config: RequestConfig,
        content: Optional[bytes],
        timeout: float,
    ) -> httpx.Response:
        # Headers are rebuilt per attempt so retries see renewed tokens
        headers = await self.build_headers(method, endpoint, config)
        return await self._send(method, url, endpoint, headers, content, timeout)

    async def get(self, endpoint: str, config: Optional[RequestConfig] = None) -> Any:
        return await self.request("GET", endpoint, config)

    async def post(self, endpoint: str, data: Any = None, config: Optional[RequestConfig] = None) -> Any:
        return await self.request("POST", endpoint, config, data)

    async def put(self, endpoint: str, data: Any = None, config: Optional[RequestConfig] = None) -> Any:
        return await self.request("PUT", endpoint, config, data)

    async def patch(self, endpoint: str, data: Any = None, config: Optional[RequestConfig] = None) -> Any:
        return await self.request("PATCH", endpoint, config, data)

    async def delete(self, endpoint: str, config: Optional[RequestConfig] = None) -> Any:
        return await self.request("DELETE", endpoint, config)
