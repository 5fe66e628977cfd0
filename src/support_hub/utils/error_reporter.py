"""Resolution error collection and reporting.

This module is the out-of-band channel for failures that must never leak
into a batch's resolution map: lookup failures, backfill write failures,
abandoned backfill writes and unresolvable ticket keys. Errors are logged as
they are collected and can be summarized or exported to CSV afterwards.

Usage:
    >>> reporter = ResolutionErrorReporter()
    >>> reporter.collect_error(
    ...     kind=ErrorKind.PERSISTENCE_FAILURE,
    ...     record_id=15,
    ...     cache_key="100-200",
    ...     error_type="OperationalError",
    ...     error_message="connection reset",
    ... )
    >>> summary = reporter.get_summary(total_records=40)
    >>> reporter.export_to_csv(Path("logs/resolution_errors.csv"), 40)
"""

import csv
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from support_hub.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorKind(Enum):
    """Kinds of isolated failures reported during batch resolution."""

    LOOKUP_FAILURE = "LookupFailure"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    PERSISTENCE_ABANDONED = "PersistenceAbandoned"
    INVALID_KEY = "InvalidKey"


@dataclass
class ResolutionError:
    """Single reported failure.

    Attributes:
        kind: Failure kind
        record_id: Ticket id the failure is attributed to (None for a key-level
            lookup failure shared by a whole group)
        cache_key: Normalized "<fid>-<oid>" key, when one exists
        error_type: Exception class name (or a short reason)
        error_message: Human-readable error description (sanitized)
    """

    kind: ErrorKind
    record_id: Optional[Any]
    cache_key: Optional[str]
    error_type: str
    error_message: str


@dataclass
class ResolutionErrorSummary:
    """Aggregated failure statistics.

    Attributes:
        total_records: Total number of records in the batch(es)
        affected_records: Distinct record ids with at least one error
        error_count: Total number of errors collected
        counts_by_kind: Error count per ErrorKind value
    """

    total_records: int
    affected_records: int
    error_count: int
    counts_by_kind: Dict[str, int] = field(default_factory=dict)

    @property
    def affected_rate(self) -> float:
        if self.total_records <= 0:
            return 0.0
        return self.affected_records / self.total_records


class ResolutionErrorReporter:
    """Collect and export isolated resolution failures.

    Collecting an error never raises; the reporter only records and logs.
    """

    def __init__(self) -> None:
        self.errors: List[ResolutionError] = []
        self._affected_record_ids: Set[Any] = set()

    def collect_error(
        self,
        kind: ErrorKind,
        record_id: Optional[Any],
        cache_key: Optional[str],
        error_type: str,
        error_message: Any,
    ) -> None:
        """Add a failure to the collection and log it."""
        message = self._sanitize_value(error_message)
        self.errors.append(
            ResolutionError(
                kind=kind,
                record_id=record_id,
                cache_key=cache_key,
                error_type=error_type,
                error_message=message,
            )
        )
        if record_id is not None:
            self._affected_record_ids.add(record_id)

        logger.warning(
            "resolution_error_reporter.error_collected",
            kind=kind.value,
            record_id=record_id,
            cache_key=cache_key,
            error_type=error_type,
            error=message,
        )

    def errors_of(self, kind: ErrorKind) -> List[ResolutionError]:
        return [error for error in self.errors if error.kind is kind]

    def get_summary(self, total_records: int) -> ResolutionErrorSummary:
        """Return aggregated failure statistics.

        Example:
            >>> reporter = ResolutionErrorReporter()
            >>> reporter.collect_error(ErrorKind.INVALID_KEY, 1, None, "InvalidKey", "empty fid")
            >>> reporter.get_summary(total_records=10).affected_records
            1
        """
        counts: Dict[str, int] = {}
        for error in self.errors:
            counts[error.kind.value] = counts.get(error.kind.value, 0) + 1

        return ResolutionErrorSummary(
            total_records=total_records,
            affected_records=len(self._affected_record_ids),
            error_count=len(self.errors),
            counts_by_kind=counts,
        )

    def export_to_csv(self, filepath: Path, total_records: int) -> None:
        """Export errors to CSV with metadata header.

        CSV Format:
            # Resolution Errors Export
            # Date: 2026-01-12T10:30:00
            # Total Records: 40
            # Affected Records: 3
            kind,record_id,cache_key,error_type,error_message
            PersistenceFailure,15,100-200,OperationalError,connection reset
        """
        summary = self.get_summary(total_records)

        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w", newline="", encoding="utf-8") as f:
            f.write("# Resolution Errors Export\n")
            f.write(f"# Date: {datetime.now().isoformat()}\n")
            f.write(f"# Total Records: {total_records}\n")
            f.write(f"# Affected Records: {summary.affected_records}\n")

            writer = csv.DictWriter(
                f,
                fieldnames=[
                    "kind",
                    "record_id",
                    "cache_key",
                    "error_type",
                    "error_message",
                ],
            )
            writer.writeheader()

            for error in self.errors:
                writer.writerow(
                    {
                        "kind": error.kind.value,
                        "record_id": "" if error.record_id is None else error.record_id,
                        "cache_key": error.cache_key or "",
                        "error_type": error.error_type,
                        "error_message": error.error_message,
                    }
                )

    def _sanitize_value(self, value: Any) -> str:
        """Sanitize value for safe logging and CSV export.

        Rules:
        - Convert None to "NULL"
        - Remove newlines and tabs (replace with space)
        - Truncate long strings (>200 chars) to 197 chars + "..."
        """
        if value is None:
            return "NULL"

        str_value = str(value).replace("\n", " ").replace("\t", " ")

        if len(str_value) > 200:
            str_value = str_value[:197] + "..."

        return str_value
