"""Shared fixtures for client tests."""

from __future__ import annotations

import asyncio
import datetime
from typing import Callable, List, Optional

import httpx
import pytest

from api.client import ApiClient
from api.retry import RetryConfig
from auth.errors import InteractionRequiredError
from auth.models import Account, Credential, TokenRequest
from auth.provider import IdentityProvider
from auth.token_manager import CredentialManager

BASE_URL = "https://api.example.com"


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class FakeIdentityProvider(IdentityProvider):
    """Identity provider with scripted results and call counters."""

    def __init__(
        self,
        token: str = "token-1",
        expires_in: Optional[datetime.timedelta] = datetime.timedelta(hours=1),
        silent_error: Optional[Exception] = None,
        interactive_error: Optional[Exception] = None,
        delay: float = 0.01,
        account: Optional[Account] = Account(home_account_id="user-1", username="doctor@example.com"),
    ):
        self.token = token
        self.expires_in = expires_in
        self.silent_error = silent_error
        self.interactive_error = interactive_error
        self.delay = delay
        self.account = account
        self.silent_calls = 0
        self.interactive_calls = 0
        self.requests: List[TokenRequest] = []

    def get_active_account(self) -> Optional[Account]:
        return self.account

    def _credential(self, token: str) -> Credential:
        expires_on = utcnow() + self.expires_in if self.expires_in is not None else None
        return Credential(access_token=token, expires_on=expires_on, scopes=("api.read",), account=self.account)

    async def acquire_token_silent(self, request: TokenRequest) -> Credential:
        self.silent_calls += 1
        self.requests.append(request)
        await asyncio.sleep(self.delay)
        if self.silent_error is not None:
            raise self.silent_error
        return self._credential(f"{self.token}-silent-{self.silent_calls}")

    async def acquire_token_interactive(self, request: TokenRequest) -> Credential:
        self.interactive_calls += 1
        await asyncio.sleep(self.delay)
        if self.interactive_error is not None:
            raise self.interactive_error
        return self._credential(f"{self.token}-interactive-{self.interactive_calls}")

    def sign_out(self) -> None:
        self.account = None


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class StaticToken:
    """Minimal credential source returning a fixed token."""

    def __init__(self, token: str = "cached-token", error: Optional[Exception] = None):
        self.token = token
        self.error = error
        self.calls = 0

    async def get_access_token(self, scopes=None) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.token

    async def close(self) -> None:
        return None


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_client(recording_sleep) -> Callable[..., ApiClient]:
    """Build an ApiClient over a MockTransport handler."""

    def factory(handler, credentials=None, **kwargs) -> ApiClient:
        kwargs.setdefault("sleep", recording_sleep)
        kwargs.setdefault("rand", lambda: 0.0)
        kwargs.setdefault("retry_config", RetryConfig())
        return ApiClient(
            credentials,
            kwargs.pop("base_url", BASE_URL),
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return factory


@pytest.fixture
def interaction_required() -> InteractionRequiredError:
    return InteractionRequiredError("login required")


def make_manager(provider: IdentityProvider, **kwargs) -> CredentialManager:
    return CredentialManager(provider, scopes=("api.read",), **kwargs)
