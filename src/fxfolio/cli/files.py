#!/usr/bin/env python3
"""Import and export subcommands for JSON and Excel transaction files."""

from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ..config import load_settings
from ..portfolio import (
    InvalidTransactionError,
    calculate_portfolio,
    load_transactions_from_excel,
    load_transactions_from_json,
    save_transactions_to_excel,
    save_transactions_to_json,
)
from ..storage import StorageError, build_store

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


def get_unique_filename(filepath: Path) -> Path:
    """
    Get a unique filename by appending '_copy' if the file exists.

    Args:
        filepath: The desired file path.

    Returns:
        A unique file path that doesn't exist.
    """
    stem = filepath.stem
    while filepath.exists():
        stem = f"{stem}_copy"
        filepath = filepath.parent / f"{stem}{filepath.suffix}"
    return filepath


def register_subcommand(subparsers):
    """Register the import and export subcommands.

    Args:
        subparsers: The argparse subparsers action to add the commands to.
    """
    import_parser = subparsers.add_parser(
        "import",
        help="Replace recorded transactions with a JSON or Excel file",
        description="Load transactions from a .json or .xlsx file and save them to the store.",
    )
    import_parser.add_argument("filename", help="Path to the .json or .xlsx file")
    import_parser.set_defaults(func=run_import)

    export_parser = subparsers.add_parser(
        "export",
        help="Write recorded transactions to a JSON or Excel file",
        description="Write recorded transactions to a .json or .xlsx file.",
    )
    export_parser.add_argument("filename", help="Path to the .json or .xlsx file")
    export_parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite the file if it exists (default: write to a '_copy' name)",
    )
    export_parser.set_defaults(func=run_export)


def run_import(args):
    """Load a transaction file, check it values cleanly, and save it.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    console = Console()
    path = Path(args.filename)

    try:
        if path.suffix.lower() in EXCEL_SUFFIXES:
            transactions = load_transactions_from_excel(str(path))
        else:
            transactions = load_transactions_from_json(str(path))
        calculate_portfolio(transactions, {})
        build_store(load_settings()).save(transactions)
    except (FileNotFoundError, InvalidTransactionError, StorageError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    console.print(f"Imported {len(transactions)} transactions from {path}")
    return 0


def run_export(args):
    """Write the stored transactions to a file.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    console = Console()

    try:
        transactions = build_store(load_settings()).load()
    except StorageError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    path = Path(args.filename)
    if not args.overwrite:
        path = get_unique_filename(path)

    if path.suffix.lower() in EXCEL_SUFFIXES:
        save_transactions_to_excel(transactions, str(path))
    else:
        save_transactions_to_json(transactions, str(path))

    console.print(f"Exported {len(transactions)} transactions to {path}")
    return 0
