#!/usr/bin/env python3
"""Login subcommand - Check the password against the remote store."""

import getpass

from rich.console import Console

from ..auth import verify_password
from ..config import load_settings


def register_subcommand(subparsers):
    """Register the login subcommand.

    Args:
        subparsers: The argparse subparsers object to register with.
    """
    parser = subparsers.add_parser(
        "login",
        help="Verify the password for the remote transaction store",
        description="Prompt for the password and check it against FXFOLIO_ENDPOINT.",
    )
    parser.set_defaults(func=run)


def run(args):
    """Prompt for and verify the password.

    Returns:
        int: Exit code (0 if the password was accepted, 1 otherwise).
    """
    settings = load_settings()
    console = Console()

    if not settings.persistence_endpoint:
        console.print("[red]Error: FXFOLIO_ENDPOINT environment variable not set[/red]")
        return 1

    password = getpass.getpass("Password: ")
    if verify_password(settings.persistence_endpoint, password, timeout=settings.request_timeout):
        console.print("[green]Password accepted.[/green]")
        return 0

    console.print("[red]Password verification failed. Check the endpoint configuration.[/red]")
    return 1
