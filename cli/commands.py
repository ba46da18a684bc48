"""CLI command implementations"""

import json
import logging
from typing import Dict, List, Optional

from rich.console import Console

import settings
from api.client import ApiClient, RequestConfig
from api.errors import ApiError
from api.factory import create_api_client, create_identity_provider
from auth.oauth_provider import StaticTokenProvider
from auth.session import Session
from config.base_url import ConfigurationError, validate_api_url
from cli.status_display import show_config_status, show_credential_status

logger = logging.getLogger(__name__)


def parse_params(pairs: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated `key=value` arguments

    Raises:
        ValueError: If an item has no '='
    """
    params = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid parameter '{pair}', expected key=value")
        params[key] = value
    return params


def describe_auth_mode() -> str:
    provider = create_identity_provider()
    if provider is None:
        return "none (anonymous)"
    if isinstance(provider, StaticTokenProvider):
        return "long-lived access token"
    return "OAuth refresh token grant"


def check_config(console: Console) -> int:
    """Validate the configured base URL under the current deployment mode

    Returns:
        Process exit code
    """
    try:
        base_url = validate_api_url(settings.API_URL, settings.IS_PRODUCTION)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1

    show_config_status(console, base_url, settings.APP_ENV, settings.IS_PRODUCTION, describe_auth_mode())
    return 0


def render_api_error(console: Console, error: ApiError):
    status = f" ({error.status_code})" if error.status_code is not None else ""
    console.print(f"[red]{error.code}{status}:[/red] {error.message}")
    if error.details:
        console.print_json(data=error.details)


async def run_request(
    console: Console,
    method: str,
    endpoint: str,
    params: Dict[str, str],
    data: Optional[str] = None,
    with_auth: bool = True,
    timeout: Optional[float] = None,
    client: Optional[ApiClient] = None,
) -> int:
    """Issue one request and print the result

    Returns:
        Process exit code
    """
    body = json.loads(data) if data else None
    config = RequestConfig(params=params, with_auth=with_auth, timeout=timeout)

    client = client or create_api_client()
    async with client:
        try:
            result = await client.request(method, endpoint, config, body)
        except ConfigurationError as e:
            console.print(f"[red]Configuration error:[/red] {e}")
            return 1
        except ApiError as e:
            render_api_error(console, e)
            return 1

        if isinstance(result, (dict, list)):
            console.print_json(data=result)
        elif result is None:
            console.print("[green]✓ Done[/green] (empty response)")
        else:
            console.print(result)
    return 0


async def show_whoami(console: Console, client: Optional[ApiClient] = None) -> int:
    """Acquire a token and show the credential and user it belongs to"""
    client = client or create_api_client()
    async with client:
        if client.credentials is None:
            console.print("[yellow]No identity provider configured[/yellow]")
            console.print("Set API_ACCESS_TOKEN, or OAUTH_TOKEN_URL and OAUTH_REFRESH_TOKEN")
            return 1

        try:
            await client.credentials.get_access_token()
        except Exception as e:
            console.print(f"[red]Authentication Error:[/red] {e}")
            return 1

        session = Session(client.credentials.provider, client.credentials)
        show_credential_status(console, client.credentials.credential, session.current_user())
    return 0
