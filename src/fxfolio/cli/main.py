#!/usr/bin/env python3
"""Main entry point for the fxfolio CLI."""

import argparse
import sys

FXFOLIO_BANNER = """
  ┌─┐─┐ ┬┌─┐┌─┐┬  ┬┌─┐
  ├┤ ┌┴┬┘├┤ │ ││  ││ │
  └  ┴ └─└  └─┘┴─┘┴└─┘
  fxfolio — personal foreign currency position tracker
"""


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with every subcommand registered."""
    parser = argparse.ArgumentParser(
        prog="fxfolio",
        description="fxfolio - track foreign currency purchases, sales and interest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fxfolio report                          Holdings with realized/unrealized P&L
  fxfolio add BUY USD 1000 --rate 32.1    Record a purchase of 1000 USD
  fxfolio add INTEREST USD 5              Record an interest credit
  fxfolio history -c USD                  Transaction history for USD
  fxfolio export backup.xlsx              Export transactions to Excel
        """,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        help="Available commands",
    )

    # Import subcommand modules and register them
    from .report import register_subcommand as register_report
    from .history import register_subcommand as register_history
    from .transactions import register_subcommand as register_transactions
    from .rates import register_subcommand as register_rates
    from .files import register_subcommand as register_files
    from .login import register_subcommand as register_login
    from .version import register_subcommand as register_version

    register_report(subparsers)
    register_history(subparsers)
    register_transactions(subparsers)
    register_rates(subparsers)
    register_files(subparsers)
    register_login(subparsers)
    register_version(subparsers)

    return parser


def main(argv: list[str] | None = None):
    """Parse CLI arguments and dispatch to the appropriate subcommand.

    Returns:
        int: Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # If no command specified, show help
    if args.command is None:
        print(FXFOLIO_BANNER)
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
