"""CLI entry point and argument parsing"""

import argparse
import asyncio
import json
import logging
import sys

from rich.console import Console

import settings
from cli.commands import check_config, parse_params, run_request, show_whoami


console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Secure API client CLI")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("check-config", help="Validate the API base URL for the current environment")
    subparsers.add_parser("whoami", help="Acquire a token and show who it belongs to")

    request = subparsers.add_parser("request", help="Send a request to the backend API")
    request.add_argument("method", choices=["GET", "POST", "PUT", "PATCH", "DELETE"], type=str.upper)
    request.add_argument("endpoint", help="Path under the API base URL, e.g. /api/v1/patients/42")
    request.add_argument(
        "--param", "-p",
        action="append",
        default=[],
        help="Query parameter as key=value (repeatable)"
    )
    request.add_argument("--data", default=None, help="JSON request body")
    request.add_argument("--no-auth", action="store_true", help="Send the request without a bearer token")
    request.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=f"Request timeout in seconds (default: {settings.REQUEST_TIMEOUT})"
    )
    return parser


def setup_logging(debug: bool):
    level = logging.DEBUG if debug else getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def main(argv=None):
    """Entry point for the CLI"""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug)

    try:
        if args.command == "check-config":
            exit_code = check_config(console)
        elif args.command == "whoami":
            exit_code = asyncio.run(show_whoami(console))
        else:
            try:
                params = parse_params(args.param)
                if args.data:
                    json.loads(args.data)
            except ValueError as e:
                console.print(f"[red]ERROR:[/red] {e}")
                sys.exit(2)

            exit_code = asyncio.run(
                run_request(
                    console,
                    args.method,
                    args.endpoint,
                    params,
                    data=args.data,
                    with_auth=not args.no_auth,
                    timeout=args.timeout,
                )
            )
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        exit_code = 130

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
