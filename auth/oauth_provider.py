"""Identity providers backed by OAuth2 tokens"""

import datetime
import logging
from typing import Awaitable, Callable, Optional, Sequence

import httpx

from utils.jwt_utils import expiry_from_claims, parse_jwt_claims
from .errors import InteractionRequiredError, TokenAcquisitionError
from .models import Account, Credential, TokenRequest
from .provider import IdentityProvider

logger = logging.getLogger(__name__)

InteractiveLogin = Callable[[TokenRequest], Awaitable[Credential]]

DEFAULT_REFRESH_BUFFER = datetime.timedelta(minutes=5)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class OAuthRefreshProvider(IdentityProvider):
    """Acquires tokens silently through the OAuth2 refresh token grant

    Interactive acquisition is delegated to the host application, which owns
    the browser/redirect part of sign-in.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        refresh_token: Optional[str],
        *,
        id_token: Optional[str] = None,
        scopes: Sequence[str] = (),
        interactive_login: Optional[InteractiveLogin] = None,
        refresh_buffer: datetime.timedelta = DEFAULT_REFRESH_BUFFER,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ):
        """
        Args:
            token_url: OAuth2 token endpoint
            client_id: Public client identifier
            refresh_token: Refresh token from a previous sign-in
            id_token: Optional ID token identifying the signed-in account
            scopes: Default scopes requested on refresh
            interactive_login: Coroutine running the host's sign-in flow
            refresh_buffer: Cached tokens expiring within this window are refreshed
            timeout: Token endpoint timeout in seconds
            transport: Optional httpx transport (tests)
            clock: Returns the current aware UTC time
        """
        self.token_url = token_url
        self.client_id = client_id
        self.scopes = tuple(scopes)
        self.interactive_login = interactive_login
        self.refresh_buffer = refresh_buffer
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self._refresh_token = refresh_token
        self._credential: Optional[Credential] = None
        self._account: Optional[Account] = None

        claims = parse_jwt_claims(id_token)
        if claims:
            self._account = Account.from_claims(claims)
        elif refresh_token:
            self._account = Account(home_account_id=client_id, username=client_id)

    def get_active_account(self) -> Optional[Account]:
        return self._account

    @property
    def refresh_token(self) -> Optional[str]:
        return self._refresh_token

    async def acquire_token_silent(self, request: TokenRequest) -> Credential:
        scopes = request.scopes or self.scopes
        cached = self._credential
        if (
            cached is not None
            and not request.force_refresh
            and set(scopes) <= set(cached.scopes)
            and not cached.expires_within(self.refresh_buffer, self._clock())
        ):
            logger.debug("Returning cached access token")
            return cached

        if not self._refresh_token:
            raise InteractionRequiredError("No refresh token available - interactive sign-in required")

        return await self._refresh(scopes)

    async def _refresh(self, scopes: Sequence[str]) -> Credential:
        data = {
            "grant_type": "refresh_token",
            "refresh_token": self._refresh_token,
            "client_id": self.client_id,
        }
        if scopes:
            data["scope"] = " ".join(scopes)

        logger.info("Attempting to refresh OAuth tokens...")
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.token_url,
                    data=data,
                    headers={"Accept": "application/json"},
                )
        except httpx.RequestError as e:
            raise TokenAcquisitionError(f"Token refresh request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.status_code != 200:
            error = payload.get("error")
            logger.error(f"Token refresh failed with status {response.status_code}: {error or 'no error code'}")
            if error in ("invalid_grant", "interaction_required", "login_required"):
                raise InteractionRequiredError(f"Refresh token rejected ({error}) - interactive sign-in required")
            raise TokenAcquisitionError(
                f"Token refresh failed with status {response.status_code}",
                status_code=response.status_code,
            )

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise TokenAcquisitionError("Token refresh response missing access_token", status_code=response.status_code)

        expires_on = None
        expires_in = payload.get("expires_in")
        if isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool):
            expires_on = self._clock() + datetime.timedelta(seconds=expires_in)
        else:
            expires_on = expiry_from_claims(parse_jwt_claims(access_token))

        # Providers that rotate refresh tokens return a new one; keep the old one otherwise
        self._refresh_token = payload.get("refresh_token") or self._refresh_token

        claims = parse_jwt_claims(payload.get("id_token"))
        if claims:
            self._account = Account.from_claims(claims)

        granted = payload.get("scope")
        granted_scopes = tuple(granted.split()) if isinstance(granted, str) and granted else tuple(scopes)

        self._credential = Credential(
            access_token=access_token,
            expires_on=expires_on,
            scopes=granted_scopes,
            account=self._account,
        )
        logger.info("Successfully refreshed OAuth tokens")
        return self._credential

    async def acquire_token_interactive(self, request: TokenRequest) -> Credential:
        if self.interactive_login is None:
            raise InteractionRequiredError("Interactive sign-in is not available in this client")

        credential = await self.interactive_login(request)
        self._credential = credential
        if credential.account is not None:
            self._account = credential.account
        return credential

    def sign_out(self) -> None:
        self._credential = None
        self._refresh_token = None
        self._account = None


class StaticTokenProvider(IdentityProvider):
    """Serves a single long-lived bearer token

    Long-lived tokens cannot be refreshed; once expired, a new token has to be
    configured.
    """

    def __init__(
        self,
        access_token: str,
        expires_on: Optional[datetime.datetime] = None,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ):
        claims = parse_jwt_claims(access_token)
        self._clock = clock
        self._account: Optional[Account] = (
            Account.from_claims(claims) if claims else Account(home_account_id="static", username="static")
        )
        self._credential: Optional[Credential] = Credential(
            access_token=access_token,
            expires_on=expires_on or expiry_from_claims(claims),
            account=self._account,
        )

    def get_active_account(self) -> Optional[Account]:
        return self._account

    async def acquire_token_silent(self, request: TokenRequest) -> Credential:
        if self._credential is None:
            raise InteractionRequiredError("No long-lived token configured")
        if self._credential.expires_within(datetime.timedelta(0), self._clock()):
            logger.error("Long-lived token has expired - please generate a new token")
            raise InteractionRequiredError("Long-lived token has expired")
        return self._credential

    async def acquire_token_interactive(self, request: TokenRequest) -> Credential:
        raise InteractionRequiredError("Long-lived tokens cannot be renewed interactively")

    def sign_out(self) -> None:
        self._credential = None
        self._account = None
