"""Authentication package: identity providers and bearer credential lifecycle"""

from .errors import (
    AuthenticationError,
    InteractionRequiredError,
    NoActiveAccountError,
    TokenAcquisitionError,
)
from .models import Account, Credential, TokenRequest, User, UserRole
from .provider import IdentityProvider
from .oauth_provider import OAuthRefreshProvider, StaticTokenProvider
from .token_manager import TOKEN_REFRESH_BUFFER, CredentialManager
from .session import Session, roles_from_claims, user_from_account

__all__ = [
    "AuthenticationError",
    "InteractionRequiredError",
    "NoActiveAccountError",
    "TokenAcquisitionError",
    "Account",
    "Credential",
    "TokenRequest",
    "User",
    "UserRole",
    "IdentityProvider",
    "OAuthRefreshProvider",
    "StaticTokenProvider",
    "TOKEN_REFRESH_BUFFER",
    "CredentialManager",
    "Session",
    "roles_from_claims",
    "user_from_account",
]
