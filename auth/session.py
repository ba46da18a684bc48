"""Signed-in user helpers built on the identity provider and credential manager"""

import inspect
import logging
from typing import Any, Callable, Iterable, List, Optional

from .models import Account, User, UserRole
from .provider import IdentityProvider
from .token_manager import CredentialManager

logger = logging.getLogger(__name__)

ROLE_CLAIMS = ("extension_Role", "roles")

_KNOWN_ROLES = {role.value: role for role in UserRole}


def roles_from_claims(claims: dict) -> List[UserRole]:
    """Extract known application roles from ID token claims

    The first present role claim wins; it may hold a list or a single string.
    Unknown role names are ignored.
    """
    raw: Any = None
    for claim in ROLE_CLAIMS:
        if claims.get(claim):
            raw = claims[claim]
            break

    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []

    return [_KNOWN_ROLES[value] for value in raw if isinstance(value, str) and value in _KNOWN_ROLES]


def user_from_account(account: Account) -> User:
    """Build the application user for an account"""
    return User(
        id=account.home_account_id,
        email=account.username,
        name=account.name or account.username,
        roles=roles_from_claims(account.id_token_claims or {}),
        tenant_id=account.tenant_id,
    )


class Session:
    """Read-only view of who is signed in, plus sign-out"""

    def __init__(
        self,
        provider: IdentityProvider,
        credentials: Optional[CredentialManager] = None,
        on_sign_out: Optional[Callable[[], Any]] = None,
    ):
        """
        Args:
            provider: Identity provider façade
            credentials: Credential manager whose cache is dropped on sign-out
            on_sign_out: Hook for the host to clear its own caches (sync or async)
        """
        self.provider = provider
        self.credentials = credentials
        self.on_sign_out = on_sign_out

    def current_account(self) -> Optional[Account]:
        return self.provider.get_active_account()

    def is_authenticated(self) -> bool:
        return self.current_account() is not None

    def current_user(self) -> Optional[User]:
        account = self.current_account()
        if account is None:
            return None
        return user_from_account(account)

    def has_role(self, role: UserRole) -> bool:
        user = self.current_user()
        return user is not None and role in user.roles

    def has_any_role(self, roles: Iterable[UserRole]) -> bool:
        user = self.current_user()
        if user is None:
            return False
        return any(role in user.roles for role in roles)

    async def sign_out(self) -> None:
        """Forget the account and every credential held for it"""
        if self.current_account() is None:
            return

        if self.on_sign_out is not None:
            result = self.on_sign_out()
            if inspect.isawaitable(result):
                await result

        if self.credentials is not None:
            self.credentials.clear()
            await self.credentials.close()

        self.provider.sign_out()
        logger.info("Signed out")
