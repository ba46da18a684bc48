"""Data models for identity provider accounts and bearer credentials"""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Account:
    """Signed-in account as reported by the identity provider

    Attributes:
        home_account_id: Stable account identifier (the `sub`/`oid` claim)
        username: Login name, usually the e-mail address
        name: Display name, if the provider supplies one
        tenant_id: Directory/tenant identifier
        id_token_claims: Raw claims of the ID token
    """
    home_account_id: str
    username: str
    name: Optional[str] = None
    tenant_id: Optional[str] = None
    id_token_claims: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Account":
        """Build an account from ID token claims"""
        emails = claims.get("emails")
        username = (
            claims.get("preferred_username")
            or claims.get("email")
            or (emails[0] if isinstance(emails, list) and emails else None)
            or claims.get("sub", "")
        )
        return cls(
            home_account_id=str(claims.get("oid") or claims.get("sub") or ""),
            username=str(username),
            name=claims.get("name"),
            tenant_id=claims.get("tid"),
            id_token_claims=dict(claims),
        )


@dataclass(frozen=True)
class Credential:
    """Bearer credential held in memory only

    Renewal produces a new Credential; instances are never mutated.

    Attributes:
        access_token: Raw bearer token
        expires_on: Aware UTC expiry, or None when the provider gave none
        scopes: Scopes the token was issued for
        account: Account the token belongs to
    """
    access_token: str
    expires_on: Optional[datetime.datetime] = None
    scopes: Tuple[str, ...] = ()
    account: Optional[Account] = None

    def expires_within(self, buffer: datetime.timedelta, now: Optional[datetime.datetime] = None) -> bool:
        """Check whether the credential expires within `buffer` from now"""
        if self.expires_on is None:
            return False
        now = now or datetime.datetime.now(datetime.timezone.utc)
        return self.expires_on <= now + buffer

    def __repr__(self) -> str:
        # Keep the bearer token out of logs and tracebacks
        return f"Credential(expires_on={self.expires_on!r}, scopes={self.scopes!r})"


@dataclass(frozen=True)
class TokenRequest:
    """Parameters for a silent or interactive token acquisition"""
    scopes: Tuple[str, ...]
    account: Optional[Account] = None
    force_refresh: bool = False

    @classmethod
    def build(cls, scopes: Sequence[str], account: Optional[Account] = None, force_refresh: bool = False) -> "TokenRequest":
        return cls(scopes=tuple(scopes), account=account, force_refresh=force_refresh)


class UserRole(str, Enum):
    """Application roles carried in the ID token"""
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    RECEPTIONIST = "RECEPTIONIST"
    PHARMACIST = "PHARMACIST"
    LAB_TECHNICIAN = "LAB_TECHNICIAN"


@dataclass
class User:
    """Application user derived from an account"""
    id: str
    email: str
    name: str
    roles: List[UserRole] = field(default_factory=list)
    tenant_id: Optional[str] = None
