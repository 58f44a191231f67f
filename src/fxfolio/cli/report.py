#!/usr/bin/env python3
"""Report subcommand - Display per-currency holdings and P&L."""

import warnings
from datetime import datetime

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..config import load_settings
from ..currency import FixedRateSource, default_rate_sources, fetch_exchange_rates
from ..portfolio import DashboardStats, calculate_portfolio
from ..storage import StorageError, build_store


def format_pl(value: float) -> str:
    """Format a P&L figure in green or red with a sign."""
    if value >= 0:
        return f"[green]+{value:,.2f}[/green]"
    return f"[red]{value:,.2f}[/red]"


def get_rates(settings, offline: bool) -> dict[str, float]:
    """Get current rates, using only the fallback constants when offline."""
    if offline:
        return fetch_exchange_rates([FixedRateSource()])
    return fetch_exchange_rates(default_rate_sources(timeout=settings.request_timeout))


def register_subcommand(subparsers):
    """Register the report subcommand with the argument parser.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "report",
        help="Display holdings, average cost and P&L per currency",
        description="Value recorded transactions against current spot rates.",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the live rate feed and use the built-in fallback rates",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Hide rate feed and storage warnings",
    )
    parser.set_defaults(func=run)


def build_holdings_table(stats: DashboardStats, catalog: dict[str, str]) -> Table:
    """Create the holdings table for a valuation result."""
    local_now = datetime.now().astimezone()
    table = Table(title=f"Holdings on {local_now.strftime('%Y-%m-%d %H:%M %Z')}")
    table.add_column("Currency", style="cyan", justify="left")
    table.add_column("Quantity", style="magenta", justify="right")
    table.add_column("Avg Cost\n(Book → Spot)", justify="right")
    table.add_column("Unrealized", justify="right")
    table.add_column("Realized", justify="right")

    for item in sorted(stats.items, key=lambda s: s.currency):
        name = catalog.get(item.currency)
        label = f"{item.currency} ({name})" if name else item.currency
        table.add_row(
            label,
            f"{item.total_quantity:,.2f}",
            f"[yellow]{item.avg_cost:,.4f}[/yellow] → [green]{item.current_rate:,.4f}[/green]",
            format_pl(item.unrealized_pl),
            format_pl(item.realized_pl),
        )

    return table


def run(args):
    """Display holdings and P&L totals.

    Args:
        args: Parsed argparse namespace with offline and quiet attributes.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    if args.quiet:
        warnings.filterwarnings("ignore", category=UserWarning)

    settings = load_settings()
    store = build_store(settings)
    console = Console()

    try:
        transactions = store.load()
        stats, _ = calculate_portfolio(transactions, get_rates(settings, args.offline))
    except (StorageError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    if not stats.items:
        console.print("No holdings yet. Record one with 'fxfolio add'.")
        return 0

    console.print(build_holdings_table(stats, settings.currency_catalog))

    total = stats.total_unrealized_pl + stats.total_realized_pl
    console.print(
        Panel(
            f"Unrealized P&L: {format_pl(stats.total_unrealized_pl)}\n"
            f"Realized P&L:   {format_pl(stats.total_realized_pl)}\n"
            f"[bold]Total P&L:      {format_pl(total)}[/bold]",
            title="Summary (TWD)",
        )
    )

    return 0
