"""
Unified CLI entry point for the support hub.

Usage:
    python -m support_hub.cli <command> [options]

Available commands:
    resolve-names  - Resolve and backfill franchise/outlet names on tickets

Examples:
    python -m support_hub.cli resolve-names --limit 100 --only-unresolved
    python -m support_hub.cli resolve-names --dry-run --errors-csv errors.csv
"""

import argparse
import sys
from typing import List, Optional


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point with subcommand routing.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = argparse.ArgumentParser(
        prog="support_hub.cli",
        description="Support hub CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m support_hub.cli resolve-names --limit 100 --only-unresolved
  python -m support_hub.cli resolve-names --dry-run --errors-csv errors.csv
        """,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
        help="Command to execute",
    )

    subparsers.add_parser(
        "resolve-names",
        help="Resolve franchise/outlet names on tickets",
        description="Resolve and backfill franchise/outlet names on support tickets",
        add_help=False,  # Let the delegated module handle help
    )

    args, remaining_args = parser.parse_known_args(argv)

    if args.command == "resolve-names":
        from support_hub.cli.resolve_names import main as resolve_names_main

        return resolve_names_main(remaining_args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
