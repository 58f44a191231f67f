#!/usr/bin/env python3
"""History subcommand - List recorded transactions, most recent first."""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import load_settings
from ..portfolio import TransactionType, calculate_portfolio
from ..storage import StorageError, build_store
from .report import format_pl


def register_subcommand(subparsers):
    """Register the history subcommand.

    Args:
        subparsers: The argparse subparsers action to add the command to.
    """
    parser = subparsers.add_parser(
        "history",
        help="List transactions with realized P&L on sales",
        description="List recorded transactions, most recent first.",
    )
    parser.add_argument(
        "--currency",
        "-c",
        help="Only show transactions in this currency",
    )
    parser.set_defaults(func=run)


def run(args):
    """Print the transaction history.

    Args:
        args: Parsed argparse namespace with a currency attribute.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    settings = load_settings()
    console = Console()
    try:
        transactions = build_store(settings).load()
        # Realized P&L needs the full history, so filter after valuation.
        _, enriched = calculate_portfolio(transactions, {})
    except (StorageError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    if args.currency:
        currency = args.currency.upper()
        enriched = [txn for txn in enriched if txn.currency == currency]

    table = Table(title="Transaction History")
    table.add_column("ID", style="dim")
    table.add_column("Date", justify="left")
    table.add_column("Type", justify="left")
    table.add_column("Currency", style="cyan")
    table.add_column("Amount", style="magenta", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Realized", justify="right")

    for txn in enriched:
        is_interest = txn.type == TransactionType.INTEREST
        table.add_row(
            txn.id,
            txn.date.isoformat(),
            txn.type.value,
            txn.currency,
            f"{txn.amount:,.2f}",
            "-" if is_interest else f"{txn.rate:,.4f}",
            format_pl(txn.realized_pl) if txn.realized_pl is not None else "",
        )

    console.print(table)
    return 0
