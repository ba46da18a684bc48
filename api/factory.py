"""Build an ApiClient from the hosting environment"""

import datetime
import logging
from typing import Optional

import httpx

import settings
from auth.oauth_provider import OAuthRefreshProvider, StaticTokenProvider
from auth.provider import IdentityProvider
from auth.token_manager import CredentialManager
from .client import ApiClient
from .csrf import CookieCsrfToken, StaticCsrfToken, first_available
from .retry import RetryConfig

logger = logging.getLogger(__name__)


def create_identity_provider() -> Optional[IdentityProvider]:
    """Pick the identity provider configured in settings

    A long-lived API_ACCESS_TOKEN wins over the refresh token grant.
    """
    if settings.API_ACCESS_TOKEN:
        logger.debug("Using long-lived access token")
        return StaticTokenProvider(settings.API_ACCESS_TOKEN)

    if settings.OAUTH_TOKEN_URL and settings.OAUTH_REFRESH_TOKEN:
        logger.debug("Using OAuth refresh token grant")
        return OAuthRefreshProvider(
            token_url=settings.OAUTH_TOKEN_URL,
            client_id=settings.OAUTH_CLIENT_ID,
            refresh_token=settings.OAUTH_REFRESH_TOKEN,
            scopes=settings.OAUTH_SCOPES,
            refresh_buffer=datetime.timedelta(seconds=settings.TOKEN_REFRESH_BUFFER),
            timeout=settings.OAUTH_TIMEOUT,
        )

    logger.debug("No identity provider configured")
    return None


def create_api_client(
    provider: Optional[IdentityProvider] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ApiClient:
    """Create an ApiClient wired to settings

    Args:
        provider: Identity provider override; defaults to the configured one
        transport: Optional httpx transport

    Returns:
        A new client; close it with `aclose()` or use it as an async context manager
    """
    provider = provider or create_identity_provider()
    credentials = None
    if provider is not None:
        credentials = CredentialManager(
            provider,
            scopes=settings.OAUTH_SCOPES,
            refresh_buffer=datetime.timedelta(seconds=settings.TOKEN_REFRESH_BUFFER),
            production=settings.IS_PRODUCTION,
        )

    client = ApiClient(
        credentials,
        settings.API_URL,
        production=settings.IS_PRODUCTION,
        timeout=settings.REQUEST_TIMEOUT,
        retry_config=RetryConfig.from_settings(),
        transport=transport,
    )
    # Explicit token first, then the double-submit cookie set by the backend
    client.csrf_token_source = first_available(
        StaticCsrfToken(settings.CSRF_TOKEN),
        CookieCsrfToken(client.cookies, settings.CSRF_COOKIE_NAME),
    )
    return client
