"""
Type definitions for franchise/outlet name resolution.

This module defines the key, record, result and statistics types used by the
batch resolver that turns ticket (franchise id, outlet id) pairs into
human-readable names.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Mapping, Optional, Union

import pandas as pd

RecordId = Hashable


class ResolutionSource(Enum):
    """Where a record's resolution came from."""

    STORED = "stored"
    LOOKUP = "lookup"
    LOOKUP_FAILED = "lookup_failed"
    INVALID_KEY = "invalid_key"


class BackfillStatus(Enum):
    """Final state of one backfill (persistence) task."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class ResolutionKey:
    """
    Normalized (franchise id, outlet id) pair identifying one name lookup.

    Build instances through normalizer.make_resolution_key so both components
    are cleaned and non-empty. Only used as a mapping key.
    """

    franchise_id: str
    outlet_id: str

    @property
    def cache_key(self) -> str:
        return f"{self.franchise_id}-{self.outlet_id}"

    def __str__(self) -> str:
        return self.cache_key


@dataclass(frozen=True)
class ResolutionResult:
    """
    Resolved display names for one key.

    Attributes:
        franchise_name: Franchise (merchant) name, or None.
        outlet_name: Outlet name, or None.
        found: Whether the names are known; drives the "unresolved"
            placeholder at render time.
    """

    franchise_name: Optional[str]
    outlet_name: Optional[str]
    found: bool

    @classmethod
    def not_found(cls) -> "ResolutionResult":
        return cls(franchise_name=None, outlet_name=None, found=False)

    @property
    def has_name(self) -> bool:
        return bool(self.franchise_name or self.outlet_name)

    @property
    def is_backfillable(self) -> bool:
        """Positive result worth writing back to ticket storage."""
        return self.found and self.has_name


@dataclass(frozen=True)
class TicketRecord:
    """
    A ticket as read from the Record Store for one resolution batch.

    Attributes:
        id: Ticket id.
        key: Normalized resolution key, or None when the ticket lacks a usable
            franchise or outlet id.
        existing_franchise_name: Franchise name already persisted on the ticket.
        existing_outlet_name: Outlet name already persisted on the ticket.
        outlet_name: Outlet name typed by the merchant on the support form,
            used only as a display fallback.
    """

    id: RecordId
    key: Optional[ResolutionKey]
    existing_franchise_name: Optional[str] = None
    existing_outlet_name: Optional[str] = None
    outlet_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TicketRecord":
        """
        Build a record from a ticket storage row.

        Expects the read contract columns ``id, fid, oid,
        franchise_name_resolved, outlet_name_resolved`` (``outlet_name`` is
        optional).
        """
        # Imported here to keep types free of a module-level cycle
        from .normalizer import clean_name, make_resolution_key

        return cls(
            id=row["id"],
            key=make_resolution_key(row.get("fid"), row.get("oid")),
            existing_franchise_name=clean_name(row.get("franchise_name_resolved")),
            existing_outlet_name=clean_name(row.get("outlet_name_resolved")),
            outlet_name=clean_name(row.get("outlet_name")),
        )


LookupFn = Callable[[str, str], Union[Optional[ResolutionResult], Awaitable[Optional[ResolutionResult]]]]
PersistFn = Callable[[RecordId, Optional[str], Optional[str]], Union[None, Awaitable[None]]]


@dataclass
class BackfillOutcome:
    """Result of one persistence call for one record."""

    record_id: RecordId
    status: BackfillStatus
    franchise_name: Optional[str] = None
    outlet_name: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BatchResolutionStatistics:
    """
    Statistics from a batch resolution.

    Attributes:
        total_records: Records in the batch.
        stored_hits: Records answered from names already on the ticket.
        invalid_keys: Records without a usable (franchise id, outlet id).
        distinct_keys: Distinct keys that needed a lookup.
        lookups_issued: Lookup calls made (always equals distinct_keys).
        lookups_found: Lookups that returned a positive result.
        lookup_failures: Lookups that raised or returned nothing.
        lookup_resolved_records: Records that received a lookup result.
        backfill_scheduled: Persistence calls scheduled.
        backfill_succeeded: Persistence calls that completed.
        backfill_failed: Persistence calls that raised.
        backfill_abandoned: Persistence calls cancelled before completing.
    """

    total_records: int = 0
    stored_hits: int = 0
    invalid_keys: int = 0
    distinct_keys: int = 0
    lookups_issued: int = 0
    lookups_found: int = 0
    lookup_failures: int = 0
    lookup_resolved_records: int = 0
    backfill_scheduled: int = 0
    backfill_succeeded: int = 0
    backfill_failed: int = 0
    backfill_abandoned: int = 0

    def record_backfill(self, outcomes: List[BackfillOutcome]) -> None:
        self.backfill_succeeded = sum(
            1 for o in outcomes if o.status is BackfillStatus.SUCCEEDED
        )
        self.backfill_failed = sum(1 for o in outcomes if o.status is BackfillStatus.FAILED)
        self.backfill_abandoned = sum(
            1 for o in outcomes if o.status is BackfillStatus.ABANDONED
        )


@dataclass
class BatchResolutionReport:
    """
    Everything one resolve_batch invocation produced.

    ``results`` is the record id -> ResolutionResult map returned to callers;
    the other fields are for logging, CLI output and tests.
    """

    results: Dict[RecordId, ResolutionResult]
    sources: Dict[RecordId, ResolutionSource] = field(default_factory=dict)
    statistics: BatchResolutionStatistics = field(default_factory=BatchResolutionStatistics)
    backfill: List[BackfillOutcome] = field(default_factory=list)

    def to_frame(self) -> pd.DataFrame:
        """Tabular view: one row per record, in batch order."""
        backfill_by_id = {outcome.record_id: outcome.status.value for outcome in self.backfill}
        rows = [
            {
                "record_id": record_id,
                "franchise_name": result.franchise_name,
                "outlet_name": result.outlet_name,
                "found": result.found,
                "source": self.sources[record_id].value if record_id in self.sources else None,
                "backfill": backfill_by_id.get(record_id),
            }
            for record_id, result in self.results.items()
        ]
        return pd.DataFrame(
            rows,
            columns=["record_id", "franchise_name", "outlet_name", "found", "source", "backfill"],
        )
