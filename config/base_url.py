"""Backend base URL resolution and validation

The base URL is resolved lazily, the first time a request needs it, so that a
misconfigured deployment surfaces as a ConfigurationError the host can render
instead of an import-time crash.
"""

import ipaddress
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_DEV_API_URL = "http://localhost:5000"

LOCAL_HOSTNAMES = ("localhost",)

BLOCKED_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in (
        "127.0.0.0/8",     # loopback
        "0.0.0.0/32",      # unspecified
        "10.0.0.0/8",      # RFC 1918
        "172.16.0.0/12",   # RFC 1918
        "192.168.0.0/16",  # RFC 1918
        "::1/128",         # loopback
        "::/128",          # unspecified
        "fc00::/7",        # unique local
        "fe80::/10",       # link local
    )
)


class ConfigurationError(Exception):
    """The client cannot run with the supplied deployment configuration

    Deliberately not an ApiError: hosts render it as a "misconfigured" state
    rather than as a failed request.
    """


def is_internal_host(host: str) -> bool:
    """Check whether a hostname points at a local or private network

    Args:
        host: Hostname or IP literal (IPv6 without brackets)

    Returns:
        True for localhost, *.local, loopback, unspecified and private ranges
    """
    host = host.strip("[]").lower()
    if host in LOCAL_HOSTNAMES or host.endswith(".local"):
        return True

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False

    return any(address.version == net.version and address in net for net in BLOCKED_NETWORKS)


def validate_api_url(configured_url: Optional[str], production: bool) -> str:
    """Validate the configured API base URL for the deployment mode

    Args:
        configured_url: Raw configured value (may be None or empty)
        production: Whether the client runs in a production deployment

    Returns:
        The base URL to use, without trailing slash

    Raises:
        ConfigurationError: If the value is missing in production, malformed,
            or insecure/internal in production
    """
    if not configured_url:
        if production:
            raise ConfigurationError(
                "API_URL is not configured. The API base URL must be set explicitly in production "
                "so requests never fall back to localhost or an insecure endpoint."
            )
        logger.warning(
            f"API_URL not configured, using {DEFAULT_DEV_API_URL} for development. "
            "This fallback is rejected in production."
        )
        return DEFAULT_DEV_API_URL

    try:
        url = httpx.URL(configured_url)
    except httpx.InvalidURL as e:
        raise ConfigurationError(
            f'Invalid API URL format: "{configured_url}". API_URL must be a valid URL '
            "(e.g. https://api.example.com)."
        ) from e

    if not url.scheme or not url.host:
        raise ConfigurationError(
            f'Invalid API URL format: "{configured_url}". API_URL must be a valid URL '
            "(e.g. https://api.example.com)."
        )

    if production:
        if url.scheme != "https":
            raise ConfigurationError(
                f"API URL must use HTTPS in production. Got: {url.scheme}. "
                "Configure API_URL with an https:// URL."
            )
        if is_internal_host(url.host):
            raise ConfigurationError(
                "API URL cannot point to localhost or a private network in production. "
                f"Got: {url.host}. Configure API_URL with the production API server URL."
            )
    elif is_internal_host(url.host):
        logger.debug(f"Using internal API host {url.host} outside production")

    return configured_url.rstrip("/")


class BaseUrlResolver:
    """Resolves the base URL once and caches it for the owner's lifetime"""

    def __init__(self, configured_url: Optional[str], production: bool = False):
        """
        Args:
            configured_url: Raw configured base URL
            production: Whether the client runs in a production deployment
        """
        self.configured_url = configured_url
        self.production = production
        self._resolved: Optional[str] = None

    def resolve(self) -> str:
        """Return the validated base URL, validating on first call only

        Failed resolutions are not cached, so a later call raises again.
        """
        if self._resolved is None:
            self._resolved = validate_api_url(self.configured_url, self.production)
        return self._resolved

    @property
    def is_resolved(self) -> bool:
        return self._resolved is not None
