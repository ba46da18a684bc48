"""Backend API access: request pipeline, error taxonomy and retry policies"""

from .errors import (
    ApiError,
    CsrfTokenMissingError,
    HttpError,
    RateLimitedError,
    RequestTimeoutError,
    UnknownApiError,
)
from .retry import (
    RetryConfig,
    RetryPlan,
    WaitRetryAfter,
    compute_delay,
    parse_retry_after,
    plan_retry,
    should_retry,
)
from .csrf import CookieCsrfToken, StaticCsrfToken, first_available
from .client import ApiClient, RequestConfig
from .query_policy import (
    retry_delay,
    run_with_retry,
    should_retry_mutation,
    should_retry_query,
)
from .factory import create_api_client, create_identity_provider

__all__ = [
    "ApiError",
    "CsrfTokenMissingError",
    "HttpError",
    "RateLimitedError",
    "RequestTimeoutError",
    "UnknownApiError",
    "RetryConfig",
    "RetryPlan",
    "WaitRetryAfter",
    "compute_delay",
    "parse_retry_after",
    "plan_retry",
    "should_retry",
    "CookieCsrfToken",
    "StaticCsrfToken",
    "first_available",
    "ApiClient",
    "RequestConfig",
    "retry_delay",
    "run_with_retry",
    "should_retry_mutation",
    "should_retry_query",
    "create_api_client",
    "create_identity_provider",
]
