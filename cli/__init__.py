"""CLI package for the secure API client

Provides commands to check configuration, inspect credentials and send
requests through the same pipeline applications use.
"""

from cli.main import main

__all__ = [
    "main",
]
