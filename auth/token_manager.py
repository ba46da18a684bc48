"""Bearer credential lifecycle: acquisition, single-flight and proactive renewal"""

import asyncio
import datetime
import logging
from typing import Callable, Optional, Sequence

from utils.secure_logger import SecureLogger
from .errors import AuthenticationError, NoActiveAccountError
from .models import Credential, TokenRequest
from .provider import IdentityProvider

logger = logging.getLogger(__name__)

TOKEN_REFRESH_BUFFER = datetime.timedelta(minutes=5)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class CredentialManager:
    """Obtains bearer tokens from an identity provider for concurrent callers

    Only one acquisition runs at a time: callers arriving while one is in
    progress await the same task and observe the same token or error. After a
    successful acquisition a renewal is scheduled `refresh_buffer` before the
    token expires.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        scopes: Sequence[str] = (),
        *,
        refresh_buffer: datetime.timedelta = TOKEN_REFRESH_BUFFER,
        production: bool = False,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ):
        """
        Args:
            provider: Identity provider façade
            scopes: Default scopes for token requests
            refresh_buffer: Renew this long before expiry
            production: Enables log redaction
            clock: Returns the current aware UTC time
        """
        self.provider = provider
        self.scopes = tuple(scopes)
        self.refresh_buffer = refresh_buffer
        self._clock = clock
        self._log = SecureLogger(logger, production=production)

        self._refresh_task: Optional[asyncio.Task] = None
        self._is_refreshing = False
        self._renewal_handle: Optional[asyncio.TimerHandle] = None
        self._renewal_task: Optional[asyncio.Task] = None
        self._next_renewal_at: Optional[datetime.datetime] = None
        self._credential: Optional[Credential] = None
        self._acquisitions = 0
        self._closed = False

    @property
    def is_refreshing(self) -> bool:
        return self._is_refreshing

    @property
    def credential(self) -> Optional[Credential]:
        """Most recently acquired credential"""
        return self._credential

    @property
    def next_renewal_at(self) -> Optional[datetime.datetime]:
        """When the pending proactive renewal fires, or None if none is scheduled"""
        if self._renewal_handle is None or self._renewal_handle.cancelled():
            return None
        return self._next_renewal_at

    @property
    def acquisitions(self) -> int:
        """Number of acquisitions started (joined callers do not count)"""
        return self._acquisitions

    async def get_access_token(self, scopes: Optional[Sequence[str]] = None) -> str:
        """Return a bearer token, joining an in-flight acquisition if there is one

        Args:
            scopes: Scopes to request; defaults to the manager's scopes

        Returns:
            Raw access token string

        Raises:
            NoActiveAccountError: If nobody is signed in
            AuthenticationError: If both silent and interactive acquisition fail
        """
        if self._is_refreshing and self._refresh_task is not None:
            return await self._join(self._refresh_task)

        account = self.provider.get_active_account()
        if account is None:
            raise NoActiveAccountError()

        request = TokenRequest.build(scopes or self.scopes, account=account)

        self._is_refreshing = True
        self._acquisitions += 1
        self._refresh_task = asyncio.ensure_future(self._acquire(request))
        return await self._join(self._refresh_task)

    async def _join(self, task: asyncio.Task) -> str:
        try:
            # Shielded so a caller's cancellation (e.g. its timeout) never cancels the shared work
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled() and self._closed:
                raise AuthenticationError("Credential manager closed during token acquisition")
            raise

    async def _acquire(self, request: TokenRequest) -> str:
        try:
            try:
                credential = await self.provider.acquire_token_silent(request)
            except Exception as e:
                self._log.error("Silent token acquisition failed:", e)
                try:
                    credential = await self.provider.acquire_token_interactive(request)
                except Exception as interactive_error:
                    self._log.error("Interactive token acquisition failed:", interactive_error)
                    raise

            if self._closed:
                return credential.access_token
            self._credential = credential
            self.schedule_renewal(credential.expires_on)
            return credential.access_token
        finally:
            self._is_refreshing = False
            self._refresh_task = None

    def schedule_renewal(self, expires_on: Optional[datetime.datetime]) -> None:
        """Replace any pending renewal with one firing `refresh_buffer` before expiry

        Nothing is scheduled once the manager is closed, when the expiry is
        unknown, or when the renewal instant has already passed.
        """
        self._cancel_renewal_timer()

        if self._closed or expires_on is None:
            return

        renew_at = expires_on - self.refresh_buffer
        delay = (renew_at - self._clock()).total_seconds()
        if delay <= 0:
            logger.debug("Token expires within the refresh buffer, not scheduling renewal")
            return

        loop = asyncio.get_running_loop()
        self._renewal_handle = loop.call_later(delay, self._on_renewal_due)
        self._next_renewal_at = renew_at
        logger.debug(f"Proactive token renewal scheduled in {delay:.0f}s")

    def _on_renewal_due(self) -> None:
        self._renewal_handle = None
        self._next_renewal_at = None
        self._renewal_task = asyncio.ensure_future(self._renew())

    async def _renew(self) -> None:
        try:
            await self.get_access_token()
            logger.info("Proactive token renewal succeeded")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Nobody is waiting on a background renewal; the next request retries
            self._log.error("Proactive token refresh failed:", e)

    def _cancel_renewal_timer(self) -> None:
        if self._renewal_handle is not None:
            self._renewal_handle.cancel()
            self._renewal_handle = None
        self._next_renewal_at = None

    def clear(self) -> None:
        """Drop the cached credential and cancel the pending renewal"""
        self._cancel_renewal_timer()
        self._credential = None

    async def close(self) -> None:
        """Cancel timers, background renewals and the in-flight acquisition

        A closed manager never caches a credential or schedules a renewal
        again, even for acquisitions started afterwards.
        """
        self._closed = True
        self._cancel_renewal_timer()

        for task in (self._renewal_task, self._refresh_task):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Acquisition settled with an error during close: {e.__class__.__name__}")
        self._renewal_task = None
