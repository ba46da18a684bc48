"""Anti-forgery token sources

A source is any zero-argument callable returning the token or None. It is
read again on every attempt, so a rotated token is picked up by retries.
"""

from typing import Callable, Optional
from urllib.parse import unquote

import httpx

CsrfTokenSource = Callable[[], Optional[str]]

STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class StaticCsrfToken:
    """A token handed over by the host (e.g. rendered into the page)"""

    def __init__(self, token: Optional[str]):
        self.token = token

    def __call__(self) -> Optional[str]:
        return self.token or None


class CookieCsrfToken:
    """Reads the token from a cookie jar (double-submit cookie pattern)"""

    def __init__(self, cookies: httpx.Cookies, name: str = "XSRF-TOKEN"):
        self.cookies = cookies
        self.name = name

    def __call__(self) -> Optional[str]:
        value = self.cookies.get(self.name)
        return unquote(value) if value else None


def first_available(*sources: CsrfTokenSource) -> CsrfTokenSource:
    """Combine sources; the first one returning a token wins"""

    def source() -> Optional[str]:
        for candidate in sources:
            token = candidate()
            if token:
                return token
        return None

    return source


def no_csrf_token() -> Optional[str]:
    return None
