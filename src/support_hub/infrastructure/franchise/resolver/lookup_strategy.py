"""
Single-flight lookup resolution.

Records are grouped by normalized key first and lookups are dispatched only
afterwards, one per distinct key. No two records can race to call the lookup
service for the same key, so the batch cache needs no locking: each key's
entry is written by exactly one task.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from support_hub.utils.error_reporter import ErrorKind, ResolutionErrorReporter
from support_hub.utils.logging import get_logger

from ..normalizer import clean_name
from ..types import LookupFn, ResolutionKey, ResolutionResult, TicketRecord
from .invocation import call_collaborator

logger = get_logger(__name__)


@dataclass
class LookupCache:
    """
    Batch-scoped results by key.

    Owned by one resolve_batch invocation and discarded with it; durable
    caching across requests is the ticket store's job.
    """

    results: Dict[ResolutionKey, ResolutionResult] = field(default_factory=dict)
    failed_keys: Set[ResolutionKey] = field(default_factory=set)

    def __contains__(self, key: ResolutionKey) -> bool:
        return key in self.results

    def __len__(self) -> int:
        return len(self.results)


def group_by_key(
    records: List[TicketRecord],
) -> Tuple[Dict[ResolutionKey, List[TicketRecord]], List[TicketRecord]]:
    """
    Group records by normalized key.

    Returns:
        Tuple of (records by key in first-seen order, records without a key)
    """
    groups: Dict[ResolutionKey, List[TicketRecord]] = {}
    invalid: List[TicketRecord] = []
    for record in records:
        if record.key is None:
            invalid.append(record)
            continue
        groups.setdefault(record.key, []).append(record)
    return groups, invalid


def coerce_lookup_result(raw: Any) -> ResolutionResult:
    """
    Normalize what a lookup returned into a ResolutionResult.

    Accepts a ResolutionResult or a mapping with franchise_name / outlet_name /
    found (camelCase keys also accepted). Names are trimmed; a result is only
    "found" when it carries at least one name.

    Raises:
        TypeError: For any other return type.
    """
    if isinstance(raw, ResolutionResult):
        franchise_name = clean_name(raw.franchise_name)
        outlet_name = clean_name(raw.outlet_name)
        found = raw.found
    elif isinstance(raw, Mapping):
        franchise_name = clean_name(raw.get("franchise_name", raw.get("franchiseName")))
        outlet_name = clean_name(raw.get("outlet_name", raw.get("outletName")))
        found = bool(raw.get("found", franchise_name or outlet_name))
    else:
        raise TypeError(
            f"Lookup returned {type(raw).__name__}; expected ResolutionResult or mapping"
        )

    if not found:
        return ResolutionResult(franchise_name=franchise_name, outlet_name=outlet_name, found=False)
    return ResolutionResult(
        franchise_name=franchise_name,
        outlet_name=outlet_name,
        found=bool(franchise_name or outlet_name),
    )


async def _lookup_key(
    key: ResolutionKey,
    lookup: LookupFn,
    cache: LookupCache,
    error_reporter: Optional[ResolutionErrorReporter],
    semaphore: Optional[asyncio.Semaphore],
) -> None:
    try:
        if semaphore is not None:
            async with semaphore:
                raw = await call_collaborator(lookup, key.franchise_id, key.outlet_id)
        else:
            raw = await call_collaborator(lookup, key.franchise_id, key.outlet_id)
        if raw is None:
            raise LookupError("lookup returned no result")
        result = coerce_lookup_result(raw)
    except Exception as e:
        # Failure degrades to a negative result for the whole group; no retry
        cache.results[key] = ResolutionResult.not_found()
        cache.failed_keys.add(key)
        logger.warning(
            "franchise_resolver.lookup_failed",
            cache_key=key.cache_key,
            error_type=type(e).__name__,
            error=str(e),
        )
        if error_reporter is not None:
            error_reporter.collect_error(
                kind=ErrorKind.LOOKUP_FAILURE,
                record_id=None,
                cache_key=key.cache_key,
                error_type=type(e).__name__,
                error_message=str(e),
            )
        return

    cache.results[key] = result


async def resolve_via_lookup(
    keys: List[ResolutionKey],
    lookup: LookupFn,
    *,
    error_reporter: Optional[ResolutionErrorReporter] = None,
    max_concurrency: Optional[int] = None,
) -> LookupCache:
    """
    Look up every key exactly once, concurrently, and settle all of them.

    Args:
        keys: Distinct keys; grouping must already be complete.
        lookup: LookupFn called as ``lookup(franchise_id, outlet_id)``.
        error_reporter: Side channel for lookup failures.
        max_concurrency: Cap on lookups in flight (None = all keys at once).

    Returns:
        LookupCache holding one result per key.

    Raises:
        ValueError: If ``keys`` contains duplicates.
    """
    if len(set(keys)) != len(keys):
        raise ValueError("resolve_via_lookup requires distinct keys")

    cache = LookupCache()
    if not keys:
        return cache

    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    logger.debug(
        "franchise_resolver.lookup_dispatched",
        keys=len(keys),
        max_concurrency=max_concurrency,
    )

    # Cancellation of the caller cancels every in-flight lookup
    await asyncio.gather(
        *(_lookup_key(key, lookup, cache, error_reporter, semaphore) for key in keys)
    )

    logger.info(
        "franchise_resolver.lookup_complete",
        lookups_issued=len(keys),
        found=sum(1 for result in cache.results.values() if result.found),
        failed=len(cache.failed_keys),
    )
    return cache
