"""
Backfill of freshly resolved names to ticket storage.

Each ticket that resolved positively through a lookup gets one persistence
call so later batches hit the stored-name fast path. Writes run as tracked
asyncio tasks: they are independent of each other, a failing write is reported
through the error reporter and never reaches the resolution results, and
nothing is left running unobserved. Every scheduled write ends up succeeded,
failed, or explicitly abandoned.
"""

import asyncio
from typing import Dict, List, Optional, Set

from support_hub.utils.error_reporter import ErrorKind, ResolutionErrorReporter
from support_hub.utils.logging import get_logger

from ..types import (
    BackfillOutcome,
    BackfillStatus,
    PersistFn,
    RecordId,
    ResolutionKey,
    ResolutionResult,
)
from .invocation import call_collaborator

logger = get_logger(__name__)

DEFAULT_DRAIN_TIMEOUT_SECONDS = 30.0


class BackfillTracker:
    """
    Request-scoped registry of pending name backfill writes.

    Use it as an async context manager around the request so pending writes
    are drained before the request is considered complete:

        >>> async with BackfillTracker() as tracker:
        ...     results = await resolve_batch(records, lookup, persist, backfill_tracker=tracker)
        ...     render(results)
        # all writes succeeded, failed (reported) or were abandoned (reported)

    A write is abandoned when the drain times out or is itself cancelled; the
    task is cancelled and the abandonment reported. If the write was already
    running in a worker thread it may still land afterwards; persist is a
    single update of both name columns, so it is never half-applied.

    Attributes:
        outcomes: Final outcome of every write collected so far.
    """

    def __init__(
        self,
        *,
        error_reporter: Optional[ResolutionErrorReporter] = None,
        drain_timeout: Optional[float] = DEFAULT_DRAIN_TIMEOUT_SECONDS,
    ) -> None:
        self.error_reporter = error_reporter
        self.drain_timeout = drain_timeout
        self.outcomes: List[BackfillOutcome] = []
        self._pending: Dict["asyncio.Task[BackfillOutcome]", BackfillOutcome] = {}
        self._scheduled_ids: Set[RecordId] = set()

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._pending if not task.done())

    @property
    def scheduled_count(self) -> int:
        return len(self._scheduled_ids)

    def schedule(
        self,
        persist: PersistFn,
        record_id: RecordId,
        result: ResolutionResult,
        key: Optional[ResolutionKey] = None,
    ) -> bool:
        """
        Start the persistence write for one record.

        Must be called from a running event loop.

        Returns:
            True if a write was scheduled; False if the result is not worth
            persisting or this record already has a write in this tracker.
        """
        if not result.is_backfillable:
            return False
        if record_id in self._scheduled_ids:
            logger.debug(
                "franchise_resolver.backfill_duplicate_skipped",
                record_id=record_id,
            )
            return False

        self._scheduled_ids.add(record_id)
        placeholder = BackfillOutcome(
            record_id=record_id,
            status=BackfillStatus.ABANDONED,
            franchise_name=result.franchise_name,
            outlet_name=result.outlet_name,
        )
        task = asyncio.create_task(
            self._write(persist, record_id, result, key),
            name=f"name-backfill-{record_id}",
        )
        self._pending[task] = placeholder
        return True

    async def _write(
        self,
        persist: PersistFn,
        record_id: RecordId,
        result: ResolutionResult,
        key: Optional[ResolutionKey],
    ) -> BackfillOutcome:
        try:
            await call_collaborator(
                persist, record_id, result.franchise_name, result.outlet_name
            )
        except Exception as e:
            if self.error_reporter is not None:
                self.error_reporter.collect_error(
                    kind=ErrorKind.PERSISTENCE_FAILURE,
                    record_id=record_id,
                    cache_key=key.cache_key if key is not None else None,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
            else:
                logger.warning(
                    "franchise_resolver.backfill_failed",
                    record_id=record_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            return BackfillOutcome(
                record_id=record_id,
                status=BackfillStatus.FAILED,
                franchise_name=result.franchise_name,
                outlet_name=result.outlet_name,
                error=str(e),
            )

        return BackfillOutcome(
            record_id=record_id,
            status=BackfillStatus.SUCCEEDED,
            franchise_name=result.franchise_name,
            outlet_name=result.outlet_name,
        )

    async def drain(self, timeout: Optional[float] = None) -> List[BackfillOutcome]:
        """
        Wait for every scheduled write and collect its outcome.

        Args:
            timeout: Seconds to wait; defaults to ``drain_timeout``. Writes
                still running when it expires are abandoned.

        Returns:
            Outcomes of every write collected by this tracker so far.

        Raises:
            asyncio.CancelledError: If the drain itself is cancelled; pending
                writes are abandoned and reported first.
        """
        if timeout is None:
            timeout = self.drain_timeout

        tasks = list(self._pending)
        if not tasks:
            return self.outcomes

        try:
            done, still_pending = await asyncio.wait(tasks, timeout=timeout)
        except asyncio.CancelledError:
            self._abandon([task for task in tasks if not task.done()], reason="cancelled")
            self._collect([task for task in tasks if task.done()])
            raise

        self._collect(list(done))
        if still_pending:
            self._abandon(list(still_pending), reason="drain_timeout")

        logger.info(
            "franchise_resolver.backfill_drained",
            succeeded=sum(1 for o in self.outcomes if o.status is BackfillStatus.SUCCEEDED),
            failed=sum(1 for o in self.outcomes if o.status is BackfillStatus.FAILED),
            abandoned=sum(1 for o in self.outcomes if o.status is BackfillStatus.ABANDONED),
        )
        return self.outcomes

    def _collect(self, tasks: List["asyncio.Task[BackfillOutcome]"]) -> None:
        for task in tasks:
            placeholder = self._pending.pop(task, None)
            if placeholder is None:
                continue
            if task.cancelled():
                self._report_abandoned(placeholder, reason="cancelled")
                self.outcomes.append(placeholder)
            else:
                self.outcomes.append(task.result())

    def _abandon(self, tasks: List["asyncio.Task[BackfillOutcome]"], reason: str) -> None:
        for task in tasks:
            placeholder = self._pending.pop(task, None)
            if placeholder is None:
                continue
            task.cancel()
            placeholder.error = reason
            self._report_abandoned(placeholder, reason=reason)
            self.outcomes.append(placeholder)

    def _report_abandoned(self, outcome: BackfillOutcome, reason: str) -> None:
        if self.error_reporter is not None:
            self.error_reporter.collect_error(
                kind=ErrorKind.PERSISTENCE_ABANDONED,
                record_id=outcome.record_id,
                cache_key=None,
                error_type="Abandoned",
                error_message=reason,
            )
        else:
            logger.warning(
                "franchise_resolver.backfill_abandoned",
                record_id=outcome.record_id,
                reason=reason,
            )

    async def __aenter__(self) -> "BackfillTracker":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.drain()
