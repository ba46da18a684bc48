"""Identity provider error types"""

from typing import Optional


class AuthenticationError(Exception):
    """Base class for credential acquisition failures"""


class NoActiveAccountError(AuthenticationError):
    """No account is signed in"""

    def __init__(self, message: str = "No active account found"):
        super().__init__(message)


class InteractionRequiredError(AuthenticationError):
    """Silent acquisition is impossible and no interactive flow is available"""


class TokenAcquisitionError(AuthenticationError):
    """The identity provider rejected or failed a token request

    Attributes:
        status_code: HTTP status returned by the token endpoint, if any
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
