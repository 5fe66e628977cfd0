"""
Core BatchNameResolver class.

This module contains the BatchNameResolver and the module-level
resolve_batch entry point. The individual steps live in sibling modules:
stored names (stored_strategy), single-flight lookups (lookup_strategy) and
name backfill (backfill).
"""

from typing import Dict, Iterable, List, Optional

from support_hub.utils.error_reporter import ErrorKind, ResolutionErrorReporter
from support_hub.utils.logging import bind_context, get_logger

from ..types import (
    BatchResolutionReport,
    BatchResolutionStatistics,
    LookupFn,
    PersistFn,
    RecordId,
    ResolutionResult,
    ResolutionSource,
    TicketRecord,
)
from .backfill import DEFAULT_DRAIN_TIMEOUT_SECONDS, BackfillTracker
from .lookup_strategy import group_by_key, resolve_via_lookup
from .stored_strategy import resolve_via_stored_names

logger = get_logger(__name__)


class DuplicateRecordIdError(ValueError):
    """Raised when a batch contains the same record id more than once."""


def _validate_batch(records: Iterable[TicketRecord]) -> List[TicketRecord]:
    if records is None:
        raise TypeError("records must be a list of TicketRecord, not None")

    batch = list(records)
    seen: set = set()
    duplicates: List[RecordId] = []
    for record in batch:
        if not isinstance(record, TicketRecord):
            raise TypeError(
                f"records must contain TicketRecord instances, got {type(record).__name__}"
            )
        if record.id in seen:
            duplicates.append(record.id)
        seen.add(record.id)

    if duplicates:
        raise DuplicateRecordIdError(f"Duplicate record ids in batch: {duplicates}")
    return batch


class BatchNameResolver:
    """
    Resolve franchise/outlet display names for a batch of tickets.

    Resolution order:

    1. Stored names already on the ticket (no lookup, no backfill)
    2. Tickets without a usable key resolve to "not found"
    3. One lookup per distinct key, shared by every ticket with that key
    4. One backfill write per ticket that newly resolved to a name

    Attributes:
        lookup: LookupFn, ``lookup(franchise_id, outlet_id)``.
        persist: PersistFn, ``persist(record_id, franchise_name, outlet_name)``.
        error_reporter: Side channel for isolated failures.
        max_concurrency: Cap on lookups in flight per batch.
        drain_timeout: Seconds to wait for backfill writes when the resolver
            drains them itself.

    Example:
        >>> resolver = BatchNameResolver(provider.lookup, repo.store_resolution)
        >>> report = await resolver.resolve_batch(records)
        >>> report.results[ticket_id].franchise_name
        'Beta Mart'
    """

    def __init__(
        self,
        lookup: LookupFn,
        persist: PersistFn,
        *,
        error_reporter: Optional[ResolutionErrorReporter] = None,
        max_concurrency: Optional[int] = None,
        drain_timeout: Optional[float] = DEFAULT_DRAIN_TIMEOUT_SECONDS,
    ) -> None:
        if not callable(lookup):
            raise TypeError("lookup must be callable")
        if not callable(persist):
            raise TypeError("persist must be callable")
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

        self.lookup = lookup
        self.persist = persist
        self.error_reporter = error_reporter
        self.max_concurrency = max_concurrency
        self.drain_timeout = drain_timeout

    async def resolve_batch(
        self,
        records: Iterable[TicketRecord],
        *,
        backfill_tracker: Optional[BackfillTracker] = None,
    ) -> BatchResolutionReport:
        """
        Resolve names for every record in the batch.

        Args:
            records: Tickets loaded for this request; ids must be unique.
            backfill_tracker: Request-scoped tracker to hand backfill writes
                to. When given, writes are scheduled into it and the caller
                drains it before the request ends. When omitted, the resolver
                drains its own tracker before returning.

        Returns:
            BatchResolutionReport whose ``results`` maps every record id to a
            ResolutionResult, in batch order.

        Raises:
            TypeError: If ``records`` is None or holds non-TicketRecord items.
            DuplicateRecordIdError: If a record id appears twice.
        """
        batch = _validate_batch(records)
        stats = BatchResolutionStatistics(total_records=len(batch))
        log = bind_context(batch_size=len(batch))

        if not batch:
            return BatchResolutionReport(results={}, statistics=stats)

        resolved: Dict[RecordId, ResolutionResult] = {}
        sources: Dict[RecordId, ResolutionSource] = {}

        # Step 1: Stored names
        stored, remaining = resolve_via_stored_names(batch)
        resolved.update(stored)
        sources.update({record_id: ResolutionSource.STORED for record_id in stored})
        stats.stored_hits = len(stored)

        # Step 2: Group by key; keyless records cannot be resolved
        groups, invalid = group_by_key(remaining)
        for record in invalid:
            resolved[record.id] = ResolutionResult.not_found()
            sources[record.id] = ResolutionSource.INVALID_KEY
            if self.error_reporter is not None:
                self.error_reporter.collect_error(
                    kind=ErrorKind.INVALID_KEY,
                    record_id=record.id,
                    cache_key=None,
                    error_type="InvalidKey",
                    error_message="missing or empty franchise/outlet id",
                )
        stats.invalid_keys = len(invalid)
        stats.distinct_keys = len(groups)

        # Step 3: One lookup per distinct key, dispatched after grouping
        cache = await resolve_via_lookup(
            list(groups),
            self.lookup,
            error_reporter=self.error_reporter,
            max_concurrency=self.max_concurrency,
        )
        stats.lookups_issued = len(cache)
        stats.lookup_failures = len(cache.failed_keys)
        stats.lookups_found = sum(1 for result in cache.results.values() if result.found)

        # Step 4: Fan out each key's result and schedule backfill writes
        owns_tracker = backfill_tracker is None
        if backfill_tracker is None:
            tracker = BackfillTracker(
                error_reporter=self.error_reporter,
                drain_timeout=self.drain_timeout,
            )
        else:
            tracker = backfill_tracker
        for key, group in groups.items():
            result = cache.results[key]
            failed = key in cache.failed_keys
            for record in group:
                resolved[record.id] = result
                sources[record.id] = (
                    ResolutionSource.LOOKUP_FAILED if failed else ResolutionSource.LOOKUP
                )
                stats.lookup_resolved_records += 1
                if not failed and tracker.schedule(self.persist, record.id, result, key):
                    stats.backfill_scheduled += 1

        # Step 5: Drain our own writes; a caller-owned tracker is drained by the caller
        backfill = []
        if owns_tracker:
            backfill = list(await tracker.drain())
            stats.record_backfill(backfill)

        log.info(
            "franchise_resolver.batch_resolution_complete",
            total_records=stats.total_records,
            stored_hits=stats.stored_hits,
            invalid_keys=stats.invalid_keys,
            distinct_keys=stats.distinct_keys,
            lookups_issued=stats.lookups_issued,
            lookups_found=stats.lookups_found,
            lookup_failures=stats.lookup_failures,
            backfill_scheduled=stats.backfill_scheduled,
            backfill_failed=stats.backfill_failed,
            backfill_abandoned=stats.backfill_abandoned,
        )

        return BatchResolutionReport(
            results={record.id: resolved[record.id] for record in batch},
            sources={record.id: sources[record.id] for record in batch},
            statistics=stats,
            backfill=backfill,
        )


async def resolve_batch(
    records: Iterable[TicketRecord],
    lookup: LookupFn,
    persist: PersistFn,
    *,
    backfill_tracker: Optional[BackfillTracker] = None,
    error_reporter: Optional[ResolutionErrorReporter] = None,
    max_concurrency: Optional[int] = None,
) -> Dict[RecordId, ResolutionResult]:
    """
    Resolve a batch and return only the record id -> ResolutionResult map.

    See BatchNameResolver.resolve_batch for the protocol.
    """
    resolver = BatchNameResolver(
        lookup,
        persist,
        error_reporter=error_reporter,
        max_concurrency=max_concurrency,
    )
    report = await resolver.resolve_batch(records, backfill_tracker=backfill_tracker)
    return report.results
