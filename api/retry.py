"""Retry eligibility and backoff delays for rate-limited requests

The delay and eligibility functions are pure apart from the injectable random
source. `WaitRetryAfter` plugs them into tenacity. Delays are in seconds.
"""

import datetime
import math
import random
import re
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

import httpx
import tenacity

RATE_LIMITED_STATUS = 429

DELTA_SECONDS = re.compile(r"-?[0-9]+")


@dataclass(frozen=True)
class RetryConfig:
    """Rate limit retry policy

    Attributes:
        max_retries: Retries after the first attempt
        base_delay: Delay of attempt 0 without a server hint
        max_delay: Upper bound for any delay
        jitter_factor: Jitter is drawn from [0, delay * jitter_factor)
    """
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter_factor: float = 0.2

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        import settings

        return cls(
            max_retries=settings.RATE_LIMIT_MAX_RETRIES,
            base_delay=settings.RATE_LIMIT_BASE_DELAY,
            max_delay=settings.RATE_LIMIT_MAX_DELAY,
            jitter_factor=settings.RATE_LIMIT_JITTER_FACTOR,
        )


DEFAULT_RETRY_CONFIG = RetryConfig()


@dataclass(frozen=True)
class RetryPlan:
    should_retry: bool
    delay: float


def compute_delay(
    attempt: int,
    retry_after: Optional[float] = None,
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay before the next attempt

    A positive server hint takes precedence over exponential backoff. Both are
    jittered upwards and capped at `config.max_delay`.

    Args:
        attempt: Zero-based index of the attempt that failed
        retry_after: Server-supplied Retry-After in seconds
        config: Retry policy
        rand: Uniform [0, 1) source

    Returns:
        Delay in seconds
    """
    if retry_after is not None and retry_after > 0:
        base = float(retry_after)
    else:
        base = config.base_delay * (2 ** attempt)

    jitter = rand() * config.jitter_factor * base
    return min(base + jitter, config.max_delay)


def should_retry(status_code: int, attempt: int, max_retries: int) -> bool:
    """Only 429 responses are retried, and only while attempts remain"""
    return status_code == RATE_LIMITED_STATUS and attempt < max_retries


def plan_retry(
    status_code: int,
    attempt: int,
    retry_after: Optional[float] = None,
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    max_retries: Optional[int] = None,
    rand: Callable[[], float] = random.random,
) -> RetryPlan:
    """Combine eligibility and delay for one failed attempt"""
    limit = config.max_retries if max_retries is None else max_retries
    if not should_retry(status_code, attempt, limit):
        return RetryPlan(should_retry=False, delay=0.0)
    return RetryPlan(should_retry=True, delay=compute_delay(attempt, retry_after, config, rand))


def parse_retry_after(value: Optional[str], now: Optional[datetime.datetime] = None) -> Optional[int]:
    """Parse a Retry-After header

    Args:
        value: Header value, either delta-seconds or an HTTP date
        now: Current aware time (defaults to UTC now)

    Returns:
        Seconds to wait (0 for dates in the past), or None if absent or invalid
    """
    if not value:
        return None

    value = value.strip()
    if DELTA_SECONDS.fullmatch(value):
        seconds = int(value)
        return seconds if seconds >= 0 else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=datetime.timezone.utc)

    now = now or datetime.datetime.now(datetime.timezone.utc)
    remaining = (when - now).total_seconds()
    return math.ceil(remaining) if remaining > 0 else 0


def is_rate_limited(response: httpx.Response) -> bool:
    return response.status_code == RATE_LIMITED_STATUS


class WaitRetryAfter(tenacity.wait.wait_base):
    """Wait strategy honouring a rate-limited response's Retry-After header

    The last outcome must be an httpx.Response; without a usable header the
    delay falls back to jittered exponential backoff.
    """

    def __init__(self, config: RetryConfig = DEFAULT_RETRY_CONFIG, rand: Callable[[], float] = random.random):
        self.config = config
        self.rand = rand

    def __call__(self, retry_state: tenacity.RetryCallState) -> float:
        retry_after = None
        outcome = retry_state.outcome
        if outcome is not None and not outcome.failed:
            retry_after = parse_retry_after(outcome.result().headers.get("Retry-After"))
        return compute_delay(retry_state.attempt_number - 1, retry_after, self.config, self.rand)
