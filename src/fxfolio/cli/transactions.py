#!/usr/bin/env python3
"""Add, edit and delete subcommands."""

from dataclasses import replace
from datetime import date

from rich.console import Console
from rich.markup import escape

from ..config import Settings, load_settings
from ..portfolio import (
    InvalidTransactionError,
    Transaction,
    TransactionType,
    add_transaction,
    delete_transaction,
    find_transaction,
    generate_transaction_id,
    normalize_transaction,
    update_transaction,
    validate_transaction,
)
from ..storage import StorageError, build_store


def _parse_type(value: str) -> TransactionType:
    try:
        return TransactionType(value.upper())
    except ValueError:
        raise ValueError(f"Unknown transaction type '{value}' (expected BUY, SELL or INTEREST)") from None


def _check_currency(currency: str, settings: Settings) -> str:
    currency = currency.strip().upper()
    if currency not in settings.currency_catalog:
        raise ValueError(f"Unknown currency '{currency}'")
    return currency


def register_subcommand(subparsers):
    """Register the add, edit and delete subcommands.

    Args:
        subparsers: The argparse subparsers action to add the commands to.
    """
    add_parser = subparsers.add_parser(
        "add",
        help="Record a BUY, SELL or INTEREST transaction",
        description="Record a new transaction. Sales may not exceed current holdings.",
    )
    add_parser.add_argument("type", help="BUY, SELL or INTEREST")
    add_parser.add_argument("currency", help="Currency code, e.g. USD")
    add_parser.add_argument("amount", type=float, help="Quantity of currency")
    add_parser.add_argument(
        "--rate",
        "-r",
        type=float,
        default=0.0,
        help="Exchange rate applied (ignored for INTEREST)",
    )
    add_parser.add_argument(
        "--date",
        "-d",
        type=date.fromisoformat,
        default=None,
        help="Transaction date as YYYY-MM-DD (default: today)",
    )
    add_parser.set_defaults(func=run_add)

    edit_parser = subparsers.add_parser(
        "edit",
        help="Change a recorded transaction",
        description="Change fields of a recorded transaction. Omitted fields are kept.",
    )
    edit_parser.add_argument("id", help="Transaction ID (see 'fxfolio history')")
    edit_parser.add_argument("--type", "-t", dest="type", help="BUY, SELL or INTEREST")
    edit_parser.add_argument("--currency", "-c", help="Currency code")
    edit_parser.add_argument("--amount", "-a", type=float, help="Quantity of currency")
    edit_parser.add_argument("--rate", "-r", type=float, help="Exchange rate applied")
    edit_parser.add_argument("--date", "-d", type=date.fromisoformat, help="Date as YYYY-MM-DD")
    edit_parser.set_defaults(func=run_edit)

    delete_parser = subparsers.add_parser(
        "delete",
        help="Delete a recorded transaction",
        description="Delete a recorded transaction by ID.",
    )
    delete_parser.add_argument("id", help="Transaction ID (see 'fxfolio history')")
    delete_parser.set_defaults(func=run_delete)


def run_add(args):
    """Validate and record a new transaction.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    settings = load_settings()
    store = build_store(settings)
    console = Console()

    try:
        transaction = normalize_transaction(Transaction(
            id=generate_transaction_id(),
            date=args.date or date.today(),
            currency=_check_currency(args.currency, settings),
            rate=args.rate,
            amount=args.amount,
            type=_parse_type(args.type),
        ))
        transactions = store.load()
        validate_transaction(transaction, transactions)
        store.save(add_transaction(transactions, transaction))
    except (InvalidTransactionError, StorageError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    console.print(f"Recorded {transaction.type.value} {transaction.amount:,.2f} {transaction.currency} [dim]({transaction.id})[/dim]")
    return 0


def run_edit(args):
    """Validate and apply changes to a recorded transaction.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    settings = load_settings()
    store = build_store(settings)
    console = Console()

    try:
        transactions = store.load()
        existing = find_transaction(transactions, args.id)
    except StorageError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except KeyError:
        console.print(f"[red]Error: No transaction with ID '{args.id}'[/red]")
        return 1

    changes = {}
    try:
        if args.type is not None:
            changes["type"] = _parse_type(args.type)
        if args.currency is not None:
            changes["currency"] = _check_currency(args.currency, settings)
        if args.amount is not None:
            changes["amount"] = args.amount
        if args.rate is not None:
            changes["rate"] = args.rate
        if args.date is not None:
            changes["date"] = args.date

        updated = normalize_transaction(replace(existing, realized_pl=None, **changes))
        validate_transaction(updated, transactions, editing=existing)
        store.save(update_transaction(transactions, updated))
    except (InvalidTransactionError, StorageError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    console.print(f"Updated transaction [dim]{updated.id}[/dim]")
    return 0


def run_delete(args):
    """Delete a recorded transaction.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    settings = load_settings()
    store = build_store(settings)
    console = Console()

    try:
        remaining = delete_transaction(store.load(), args.id)
        store.save(remaining)
    except StorageError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except KeyError:
        console.print(f"[red]Error: No transaction with ID '{args.id}'[/red]")
        return 1

    console.print(f"Deleted transaction [dim]{args.id}[/dim]")
    return 0
