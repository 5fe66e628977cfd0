"""
CLI for resolving franchise/outlet names on support tickets.

Loads a page of tickets, resolves their franchise/outlet names through the
merchant platform and writes newly found names back to the tickets.

Usage:
    # Resolve the first 100 tickets that have no stored names yet
    python -m support_hub.cli resolve-names --limit 100 --only-unresolved

    # Dry run: resolve and print, write nothing back
    python -m support_hub.cli resolve-names --limit 20 --dry-run

    # Export per-ticket results and isolated failures
    python -m support_hub.cli resolve-names --output results.csv --errors-csv errors.csv
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, List, Optional

from support_hub.config.settings import get_settings
from support_hub.infrastructure.franchise.franchise_provider import FranchiseProvider
from support_hub.infrastructure.franchise.service import ResolvedPage, TicketNameService
from support_hub.io.repositories.ticket_repository import (
    TicketRepository,
    create_engine_from_settings,
)
from support_hub.utils.error_reporter import ResolutionErrorReporter
from support_hub.utils.logging import get_logger

logger = get_logger(__name__)


def _skip_persist(record_id: Any, franchise_name: Optional[str], outlet_name: Optional[str]) -> None:
    logger.debug("resolve_names.dry_run_skip_persist", record_id=record_id)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="support_hub.cli resolve-names",
        description="Resolve franchise/outlet names for support tickets",
    )
    parser.add_argument("--limit", type=int, default=None, help="Tickets per page (default: all)")
    parser.add_argument("--offset", type=int, default=0, help="Tickets to skip")
    parser.add_argument(
        "--only-unresolved",
        action="store_true",
        help="Only tickets without stored franchise/outlet names",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Resolve names but do not write them back",
    )
    parser.add_argument("--output", type=Path, default=None, help="Write per-ticket results to CSV")
    parser.add_argument(
        "--errors-csv",
        type=Path,
        default=None,
        help="Export lookup/persistence failures to CSV",
    )
    return parser


def print_summary(page: ResolvedPage, reporter: ResolutionErrorReporter, dry_run: bool) -> None:
    stats = page.report.statistics

    print("\n" + "=" * 60)
    print("Franchise/Outlet Name Resolution" + (" [DRY RUN]" if dry_run else ""))
    print("=" * 60)
    print(f"Tickets: {stats.total_records}")
    print(f"Stored names used: {stats.stored_hits}")
    print(f"Invalid keys: {stats.invalid_keys}")
    print(f"Lookups issued: {stats.lookups_issued} (found: {stats.lookups_found}, failed: {stats.lookup_failures})")
    if dry_run:
        print(f"Backfill writes skipped: {stats.backfill_scheduled}")
    else:
        print(
            f"Backfill writes: {stats.backfill_succeeded} succeeded, "
            f"{stats.backfill_failed} failed, {stats.backfill_abandoned} abandoned"
        )
    print(f"Reported errors: {len(reporter.errors)}")
    print("=" * 60)

    for record_id, names in list(page.display().items())[:10]:
        print(f"  - {record_id}: {names.franchise_name} / {names.outlet_name}")
    print()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.limit is not None and args.limit < 0:
        parser.error("--limit must be >= 0")
    if args.offset < 0:
        parser.error("--offset must be >= 0")

    try:
        settings = get_settings()
        engine = create_engine_from_settings()
    except Exception as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 1

    if not settings.has_franchise_credentials:
        print(
            "⚠️  Merchant platform credentials not configured; lookups will be reported as failures",
            file=sys.stderr,
        )

    reporter = ResolutionErrorReporter()
    service = TicketNameService(
        TicketRepository(engine, settings.tickets_table),
        FranchiseProvider(),
        error_reporter=reporter,
        settings=settings,
    )

    try:
        page = asyncio.run(
            service.resolve_page(
                args.limit,
                args.offset,
                only_unresolved=args.only_unresolved,
                persist=_skip_persist if args.dry_run else None,
            )
        )
    except Exception as e:
        print(f"❌ Name resolution failed: {e}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()

    print_summary(page, reporter, args.dry_run)

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        page.report.to_frame().to_csv(args.output, index=False)
        print(f"Results written to {args.output}")

    if args.errors_csv is not None:
        reporter.export_to_csv(args.errors_csv, total_records=page.report.statistics.total_records)
        print(f"Errors written to {args.errors_csv}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
