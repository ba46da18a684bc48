"""Status display functionality for CLI"""

import datetime
from typing import Optional

from rich.table import Table

from auth.models import Credential, User


def format_time_until(expires_on: Optional[datetime.datetime]) -> str:
    """Human readable time until expiry, e.g. "1h 5m" or "expired" """
    if expires_on is None:
        return "unknown"

    delta = expires_on - datetime.datetime.now(datetime.timezone.utc)
    seconds = delta.total_seconds()
    if seconds <= 0:
        return "expired"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def show_config_status(console, base_url: str, app_env: str, production: bool, auth_mode: str):
    """
    Display the resolved client configuration

    Args:
        console: Rich console for output
        base_url: Validated API base URL
        app_env: Deployment environment name
        production: Whether production rules apply
        auth_mode: Description of the configured identity provider
    """
    table = Table(title="API Client Configuration")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Environment", app_env)
    table.add_row("Production Rules", "Yes" if production else "No")
    table.add_row("API Base URL", base_url)
    table.add_row("Authentication", auth_mode)

    console.print(table)


def show_credential_status(console, credential: Optional[Credential], user: Optional[User] = None):
    """
    Display the current bearer credential without revealing it

    Args:
        console: Rich console for output
        credential: Most recent credential, if any
        user: Signed-in user, if known
    """
    table = Table(title="Credential Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Has Token", "Yes" if credential else "No")
    if credential:
        expires = credential.expires_on.isoformat() if credential.expires_on else "never"
        table.add_row("Expires At", expires)
        table.add_row("Time Until Expiry", format_time_until(credential.expires_on))
        table.add_row("Scopes", " ".join(credential.scopes) or "-")
    if user:
        table.add_row("User", f"{user.name} <{user.email}>")
        table.add_row("Roles", ", ".join(role.value for role in user.roles) or "-")

    console.print(table)
