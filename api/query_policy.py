"""Retry tier for data-access layers built on top of ApiClient

ApiClient already retries HTTP 429 locally. Callers that cache or poll data
may retry once more on top of that, with a smaller budget:

- queries: rate limits up to 2 more times, any other non-4xx failure up to 3
  times, other 4xx never
- mutations: rate limits once, nothing else
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional

import tenacity

from .errors import ApiError
from .retry import DEFAULT_RETRY_CONFIG, RetryConfig, compute_delay

logger = logging.getLogger(__name__)

# Cache freshness window for query results (seconds)
STALE_TIME = 5 * 60
GC_TIME = 5 * 60

QUERY_RATE_LIMIT_RETRIES = 2
QUERY_MAX_RETRIES = 3
MUTATION_RATE_LIMIT_RETRIES = 1


def _status_of(error: BaseException) -> Optional[int]:
    if isinstance(error, ApiError):
        return error.status_code
    return None


def should_retry_query(failure_count: int, error: BaseException) -> bool:
    """Decide whether a failed read should be attempted again

    Args:
        failure_count: Failures so far, starting at 0 for the first failure
        error: The failure
    """
    status = _status_of(error)
    if status == 429:
        return failure_count < QUERY_RATE_LIMIT_RETRIES
    if status is not None and 400 <= status < 500:
        return False
    return failure_count < QUERY_MAX_RETRIES


def should_retry_mutation(failure_count: int, error: BaseException) -> bool:
    """Writes are only retried after rate limiting"""
    if _status_of(error) == 429:
        return failure_count < MUTATION_RATE_LIMIT_RETRIES
    return False


def retry_delay(
    failure_count: int,
    error: BaseException,
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay before the next attempt, honouring a server hint carried by the error"""
    retry_after = None
    if isinstance(error, ApiError) and error.status_code == 429:
        hint = error.details.get("retry_after_seconds")
        if isinstance(hint, (int, float)) and not isinstance(hint, bool) and hint > 0:
            retry_after = hint
    return compute_delay(failure_count, retry_after, config, rand)


async def run_with_retry(
    operation: Callable[[], Awaitable[Any]],
    kind: str = "query",
    *,
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
) -> Any:
    """Run an async operation under the query or mutation retry rules

    Args:
        operation: Zero-argument coroutine function, called once per attempt
        kind: "query" or "mutation"
        config: Backoff parameters
        sleep: Coroutine used between attempts
        rand: Uniform [0, 1) source for jitter

    Returns:
        The operation's result

    Raises:
        The last error once the retry rules decline another attempt
    """
    if kind == "query":
        decide = should_retry_query
        max_attempts = QUERY_MAX_RETRIES + 1
    elif kind == "mutation":
        decide = should_retry_mutation
        max_attempts = MUTATION_RATE_LIMIT_RETRIES + 1
    else:
        raise ValueError(f"Unknown operation kind: {kind}")

    def retry_failure(retry_state: tenacity.RetryCallState) -> bool:
        error = retry_state.outcome.exception()
        # Cancellation and other BaseExceptions always propagate
        if not isinstance(error, Exception):
            return False
        return decide(retry_state.attempt_number - 1, error)

    def wait_for_failure(retry_state: tenacity.RetryCallState) -> float:
        return retry_delay(retry_state.attempt_number - 1, retry_state.outcome.exception(), config, rand)

    def log_retry(retry_state: tenacity.RetryCallState) -> None:
        error = retry_state.outcome.exception()
        logger.info(f"{kind.capitalize()} failed with {_describe(error)}, retrying in {retry_state.next_action.sleep:.1f}s")

    retrying = tenacity.AsyncRetrying(
        stop=tenacity.stop_after_attempt(max_attempts),
        wait=wait_for_failure,
        retry=retry_failure,
        sleep=sleep,
        before_sleep=log_retry,
        reraise=True,
    )
    try:
        return await retrying(operation)
    except Exception as e:
        logger.error(f"{kind.capitalize()} error: {_describe(e)}")
        raise


def _describe(error: BaseException) -> str:
    if isinstance(error, ApiError):
        return f"{error.code} {error.message}"
    return f"{error.__class__.__name__} {error}"
