#!/usr/bin/env python3
"""Rates subcommand - Show current spot buy rates."""

from rich.console import Console
from rich.table import Table

from .. import currency
from ..config import load_settings
from .report import get_rates


def register_subcommand(subparsers):
    """Register the rates subcommand.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "rates",
        help="Show current spot buy rates (TWD per unit)",
        description="Fetch the Bank of Taiwan spot buy rates, falling back to built-in rates.",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Show the built-in fallback rates without fetching",
    )
    parser.set_defaults(func=run)


def run(args):
    """Print the rate for every catalog currency.

    Returns:
        int: Exit code (0 for success).
    """
    settings = load_settings()
    currency.verbose = True
    rates = get_rates(settings, args.offline)

    table = Table(title="Spot Buy Rates (TWD)")
    table.add_column("Currency", style="cyan")
    table.add_column("Name")
    table.add_column("Rate", style="green", justify="right")

    for code, name in settings.currency_catalog.items():
        rate = rates.get(code)
        table.add_row(code, name, f"{rate:,.4f}" if rate else "N/A")

    Console().print(table)
    return 0
