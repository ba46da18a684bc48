"""
Identity provider interface.
Defines the contract the credential manager relies on.
"""
from abc import ABC, abstractmethod
from typing import Optional

from .models import Account, Credential, TokenRequest


class IdentityProvider(ABC):
    """Abstract base class for identity provider façades"""

    @abstractmethod
    def get_active_account(self) -> Optional[Account]:
        """Return the currently signed-in account, if any"""

    @abstractmethod
    async def acquire_token_silent(self, request: TokenRequest) -> Credential:
        """Acquire a token without user interaction

        Args:
            request: Scopes and account to acquire a token for

        Returns:
            A fresh or cached credential

        Raises:
            AuthenticationError: If no token can be obtained silently
        """

    @abstractmethod
    async def acquire_token_interactive(self, request: TokenRequest) -> Credential:
        """Acquire a token by involving the user (popup, browser, prompt)

        Args:
            request: Scopes and account to acquire a token for

        Returns:
            A new credential

        Raises:
            AuthenticationError: If the interactive flow fails or is unavailable
        """

    def sign_out(self) -> None:
        """Forget the active account. Providers without state ignore this."""
