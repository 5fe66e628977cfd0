"""Tests for BatchNameResolver and the module-level resolve_batch."""

import asyncio
import threading
from collections import Counter
from typing import Dict, List, Optional, Tuple

import pytest

from support_hub.infrastructure.franchise.normalizer import make_resolution_key
from support_hub.infrastructure.franchise.resolver import (
    BackfillTracker,
    BatchNameResolver,
    DuplicateRecordIdError,
    resolve_batch,
)
from support_hub.infrastructure.franchise.types import (
    BackfillStatus,
    ResolutionResult,
    ResolutionSource,
    TicketRecord,
)
from support_hub.utils.error_reporter import ErrorKind, ResolutionErrorReporter

BETA = ResolutionResult(franchise_name="Beta Mart", outlet_name="Beta #3", found=True)


def ticket(record_id, fid="101", oid="201", franchise=None, outlet=None) -> TicketRecord:
    return TicketRecord(
        id=record_id,
        key=make_resolution_key(fid, oid),
        existing_franchise_name=franchise,
        existing_outlet_name=outlet,
    )


class FakeLookup:
    """Synchronous lookup collaborator with a call log."""

    def __init__(self, answers: Optional[Dict[Tuple[str, str], object]] = None, default=None):
        self.answers = answers or {}
        self.default = default
        self.calls: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def __call__(self, franchise_id: str, outlet_id: str):
        with self._lock:
            self.calls.append((franchise_id, outlet_id))
        answer = self.answers.get((franchise_id, outlet_id), self.default)
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakePersist:
    """Asynchronous persistence collaborator with a call log."""

    def __init__(self, failing_ids=()):
        self.failing_ids = set(failing_ids)
        self.calls: List[Tuple[object, Optional[str], Optional[str]]] = []

    async def __call__(self, record_id, franchise_name, outlet_name):
        self.calls.append((record_id, franchise_name, outlet_name))
        if record_id in self.failing_ids:
            raise RuntimeError(f"write failed for {record_id}")


@pytest.fixture
def reporter():
    return ResolutionErrorReporter()


class TestSingleFlight:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [1, 2, 25])
    async def test_one_lookup_per_key_regardless_of_group_size(self, count):
        lookup = FakeLookup(default=BETA)
        persist = FakePersist()

        results = await resolve_batch([ticket(i) for i in range(count)], lookup, persist)

        assert lookup.calls == [("101", "201")]
        assert len(results) == count

    @pytest.mark.asyncio
    async def test_group_members_receive_identical_result(self):
        lookup = FakeLookup(default=BETA)

        results = await resolve_batch(
            [ticket(1), ticket(2, fid=" 101 "), ticket(3, oid="2-01")], lookup, FakePersist()
        )

        assert results[1] == BETA
        assert results[1] is results[2] is results[3]
        assert len(lookup.calls) == 1

    @pytest.mark.asyncio
    async def test_distinct_keys_looked_up_once_each(self):
        lookup = FakeLookup(
            {
                ("101", "201"): BETA,
                ("102", "202"): ResolutionResult("Gamma", "Gamma #1", True),
            }
        )

        results = await resolve_batch(
            [ticket(1), ticket(2, "102", "202"), ticket(3), ticket(4, "102", "202")],
            lookup,
            FakePersist(),
        )

        assert Counter(lookup.calls) == Counter({("101", "201"): 1, ("102", "202"): 1})
        assert results[2].franchise_name == "Gamma"
        assert results[4] is results[2]

    @pytest.mark.asyncio
    async def test_lookups_for_distinct_keys_run_concurrently(self):
        in_flight = 0
        peak = 0

        async def lookup(franchise_id, outlet_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return BETA

        records = [ticket(i, fid=str(100 + i)) for i in range(5)]
        await resolve_batch(records, lookup, FakePersist())

        assert peak == 5

    @pytest.mark.asyncio
    async def test_max_concurrency_caps_lookups_in_flight(self):
        in_flight = 0
        peak = 0

        async def lookup(franchise_id, outlet_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return BETA

        records = [ticket(i, fid=str(100 + i)) for i in range(6)]
        results = await resolve_batch(records, lookup, FakePersist(), max_concurrency=2)

        assert peak == 2
        assert all(result == BETA for result in results.values())

    @pytest.mark.asyncio
    async def test_out_of_order_completion_keeps_results_with_their_key(self):
        gamma = ResolutionResult(franchise_name="Gamma", outlet_name="Gamma #1", found=True)
        second_done = asyncio.Event()
        completed = []

        async def lookup(franchise_id, outlet_id):
            if franchise_id == "101":
                # First key dispatched finishes last
                await second_done.wait()
                await asyncio.sleep(0.02)
                completed.append(franchise_id)
                return ResolutionResult("Beta Mart", "Beta #3", True)
            await asyncio.sleep(0.005)
            completed.append(franchise_id)
            second_done.set()
            return gamma

        records = [
            ticket(1),
            ticket(2, "102", "202"),
            ticket(3),
            ticket(4, "102", "202"),
            ticket(5),
        ]
        results = await resolve_batch(records, lookup, FakePersist())

        assert completed == ["102", "101"]
        assert results[1] is results[3] is results[5]
        assert results[2] is results[4]
        assert results[1] is not results[2]
        assert {results[i].franchise_name for i in (1, 3, 5)} == {"Beta Mart"}
        assert {results[i].franchise_name for i in (2, 4)} == {"Gamma"}


class TestStoredNames:
    @pytest.mark.asyncio
    async def test_shared_key_scenario(self):
        """Two tickets share a key; a third already carries a stored name."""
        lookup = FakeLookup(default=BETA)
        persist = FakePersist()
        records = [
            ticket(1, "101", "201"),
            ticket(2, "101", "201"),
            ticket(3, "102", "202", franchise="Acme", outlet="Acme Central"),
        ]

        results = await resolve_batch(records, lookup, persist)

        assert lookup.calls == [("101", "201")]
        assert results[1] == BETA
        assert results[2] == BETA
        assert results[3] == ResolutionResult("Acme", "Acme Central", True)
        assert sorted(call[0] for call in persist.calls) == [1, 2]

    @pytest.mark.asyncio
    async def test_stored_name_is_never_looked_up_or_persisted(self):
        lookup = FakeLookup(default=BETA)
        persist = FakePersist()

        results = await resolve_batch([ticket(1, franchise="Acme")], lookup, persist)

        assert results[1] == ResolutionResult("Acme", None, True)
        assert lookup.calls == []
        assert persist.calls == []

    @pytest.mark.asyncio
    async def test_stored_name_does_not_block_lookup_for_same_key(self):
        lookup = FakeLookup(default=BETA)
        persist = FakePersist()

        results = await resolve_batch(
            [ticket(1, outlet="Stored Outlet"), ticket(2)], lookup, persist
        )

        assert results[1] == ResolutionResult(None, "Stored Outlet", True)
        assert results[2] == BETA
        assert lookup.calls == [("101", "201")]
        assert persist.calls == [(2, "Beta Mart", "Beta #3")]

    @pytest.mark.asyncio
    async def test_blank_stored_names_fall_through_to_lookup(self):
        lookup = FakeLookup(default=BETA)

        results = await resolve_batch([ticket(1, franchise="  ", outlet="")], lookup, FakePersist())

        assert results[1] == BETA
        assert len(lookup.calls) == 1


class TestInvalidKeys:
    @pytest.mark.asyncio
    async def test_keyless_record_resolves_not_found_without_calls(self, reporter):
        lookup = FakeLookup(default=BETA)
        persist = FakePersist()

        resolver = BatchNameResolver(lookup, persist, error_reporter=reporter)
        report = await resolver.resolve_batch([ticket(1, fid="  "), ticket(2, oid=None)])

        assert report.results[1] == ResolutionResult.not_found()
        assert report.results[2] == ResolutionResult.not_found()
        assert report.sources[1] is ResolutionSource.INVALID_KEY
        assert lookup.calls == []
        assert persist.calls == []
        assert [e.record_id for e in reporter.errors_of(ErrorKind.INVALID_KEY)] == [1, 2]
        assert report.statistics.invalid_keys == 2


class TestLookupFailures:
    @pytest.mark.asyncio
    async def test_failed_lookup_degrades_group_to_not_found(self, reporter):
        lookup = FakeLookup(
            {
                ("103", "203"): ConnectionError("platform unreachable"),
                ("101", "201"): BETA,
            }
        )
        persist = FakePersist()
        resolver = BatchNameResolver(lookup, persist, error_reporter=reporter)

        report = await resolver.resolve_batch(
            [ticket(1, "103", "203"), ticket(2, "103", "203"), ticket(3)]
        )

        assert report.results[1] == ResolutionResult.not_found()
        assert report.results[2] == ResolutionResult.not_found()
        assert report.results[3] == BETA
        assert report.sources[1] is ResolutionSource.LOOKUP_FAILED
        assert persist.calls == [(3, "Beta Mart", "Beta #3")]
        # One report per failed key, no retry
        assert Counter(lookup.calls)[("103", "203")] == 1
        failures = reporter.errors_of(ErrorKind.LOOKUP_FAILURE)
        assert len(failures) == 1
        assert failures[0].cache_key == "103-203"
        assert failures[0].error_type == "ConnectionError"
        assert report.statistics.lookup_failures == 1

    @pytest.mark.asyncio
    async def test_none_return_is_a_failure(self, reporter):
        lookup = FakeLookup(default=None)

        report = await BatchNameResolver(
            lookup, FakePersist(), error_reporter=reporter
        ).resolve_batch([ticket(1)])

        assert report.results[1] == ResolutionResult.not_found()
        assert reporter.errors_of(ErrorKind.LOOKUP_FAILURE)[0].error_type == "LookupError"

    @pytest.mark.asyncio
    async def test_not_found_is_not_a_failure(self, reporter):
        lookup = FakeLookup(default=ResolutionResult.not_found())
        persist = FakePersist()

        report = await BatchNameResolver(lookup, persist, error_reporter=reporter).resolve_batch(
            [ticket(1)]
        )

        assert report.results[1].found is False
        assert report.sources[1] is ResolutionSource.LOOKUP
        assert reporter.errors == []
        assert persist.calls == []

    @pytest.mark.asyncio
    async def test_mapping_results_are_accepted(self):
        lookup = FakeLookup(default={"franchiseName": " Beta Mart ", "outletName": "Beta #3", "found": True})

        results = await resolve_batch([ticket(1)], lookup, FakePersist())

        assert results[1] == BETA


class TestBackfill:
    @pytest.mark.asyncio
    async def test_persist_once_per_newly_resolved_record(self):
        lookup = FakeLookup(
            {
                ("101", "201"): BETA,
                ("102", "202"): ResolutionResult.not_found(),
                ("104", "204"): ResolutionResult(None, None, True),
            }
        )
        persist = FakePersist()

        await resolve_batch(
            [
                ticket(1),
                ticket(2),
                ticket(3, "102", "202"),
                ticket(4, "104", "204"),
                ticket(5, franchise="Acme"),
            ],
            lookup,
            persist,
        )

        assert sorted(persist.calls) == [(1, "Beta Mart", "Beta #3"), (2, "Beta Mart", "Beta #3")]

    @pytest.mark.asyncio
    async def test_persistence_failure_is_isolated(self, reporter):
        persist = FakePersist(failing_ids={1})
        resolver = BatchNameResolver(FakeLookup(default=BETA), persist, error_reporter=reporter)

        report = await resolver.resolve_batch([ticket(1), ticket(2)])

        assert report.results[1] == BETA
        assert report.results[2] == BETA
        assert sorted(call[0] for call in persist.calls) == [1, 2]
        statuses = {outcome.record_id: outcome.status for outcome in report.backfill}
        assert statuses == {1: BackfillStatus.FAILED, 2: BackfillStatus.SUCCEEDED}
        failures = reporter.errors_of(ErrorKind.PERSISTENCE_FAILURE)
        assert [(e.record_id, e.cache_key) for e in failures] == [(1, "101-201")]
        assert report.statistics.backfill_failed == 1
        assert report.statistics.backfill_succeeded == 1

    @pytest.mark.asyncio
    async def test_sync_persist_runs_off_the_event_loop(self):
        loop_thread = threading.get_ident()
        threads = []

        def persist(record_id, franchise_name, outlet_name):
            threads.append(threading.get_ident())

        await resolve_batch([ticket(1), ticket(2)], FakeLookup(default=BETA), persist)

        assert len(threads) == 2
        assert loop_thread not in threads

    @pytest.mark.asyncio
    async def test_resolver_drains_its_own_writes_before_returning(self):
        finished = []

        async def persist(record_id, franchise_name, outlet_name):
            await asyncio.sleep(0.01)
            finished.append(record_id)

        await resolve_batch([ticket(1), ticket(2)], FakeLookup(default=BETA), persist)

        assert sorted(finished) == [1, 2]

    @pytest.mark.asyncio
    async def test_caller_owned_tracker_defers_writes(self):
        release = asyncio.Event()
        finished = []

        async def persist(record_id, franchise_name, outlet_name):
            await release.wait()
            finished.append(record_id)

        async with BackfillTracker() as tracker:
            results = await resolve_batch(
                [ticket(1), ticket(2)], FakeLookup(default=BETA), persist, backfill_tracker=tracker
            )
            assert results[1] == BETA
            assert finished == []
            assert tracker.pending_count == 2
            release.set()

        assert sorted(finished) == [1, 2]
        assert [o.status for o in tracker.outcomes] == [BackfillStatus.SUCCEEDED] * 2

    @pytest.mark.asyncio
    async def test_tracker_shared_across_batches_writes_each_record_once(self):
        persist = FakePersist()
        lookup = FakeLookup(default=BETA)

        async with BackfillTracker() as tracker:
            await resolve_batch([ticket(1)], lookup, persist, backfill_tracker=tracker)
            await resolve_batch([ticket(1)], lookup, persist, backfill_tracker=tracker)

        assert persist.calls == [(1, "Beta Mart", "Beta #3")]


class TestContract:
    @pytest.mark.asyncio
    async def test_empty_batch_makes_no_calls(self):
        lookup = FakeLookup(default=BETA)
        persist = FakePersist()

        report = await BatchNameResolver(lookup, persist).resolve_batch([])

        assert report.results == {}
        assert lookup.calls == []
        assert persist.calls == []

    @pytest.mark.asyncio
    async def test_duplicate_ids_raise_before_any_call(self):
        lookup = FakeLookup(default=BETA)

        with pytest.raises(DuplicateRecordIdError):
            await resolve_batch([ticket(1), ticket(1, "102", "202")], lookup, FakePersist())

        assert lookup.calls == []

    @pytest.mark.asyncio
    async def test_none_records_raise_type_error(self):
        with pytest.raises(TypeError):
            await resolve_batch(None, FakeLookup(), FakePersist())

    @pytest.mark.asyncio
    async def test_non_record_items_raise_type_error(self):
        with pytest.raises(TypeError):
            await resolve_batch([{"id": 1}], FakeLookup(), FakePersist())

    def test_non_callable_collaborators_rejected(self):
        with pytest.raises(TypeError):
            BatchNameResolver("not callable", FakePersist())
        with pytest.raises(TypeError):
            BatchNameResolver(FakeLookup(), None)

    def test_invalid_max_concurrency_rejected(self):
        with pytest.raises(ValueError):
            BatchNameResolver(FakeLookup(), FakePersist(), max_concurrency=0)

    @pytest.mark.asyncio
    async def test_results_follow_batch_order(self):
        records = [ticket(3), ticket(1, franchise="Acme"), ticket(2, fid="")]

        report = await BatchNameResolver(FakeLookup(default=BETA), FakePersist()).resolve_batch(records)

        assert list(report.results) == [3, 1, 2]
        assert list(report.sources) == [3, 1, 2]

    @pytest.mark.asyncio
    async def test_idempotent_for_unchanged_batch(self):
        lookup = FakeLookup(
            {("101", "201"): BETA, ("102", "202"): ResolutionResult.not_found()}
        )
        records = [ticket(1), ticket(2, "102", "202"), ticket(3, franchise="Acme"), ticket(4, fid="")]

        first = await resolve_batch(records, lookup, FakePersist())
        second = await resolve_batch(records, lookup, FakePersist())

        assert first == second

    @pytest.mark.asyncio
    async def test_statistics(self):
        lookup = FakeLookup(
            {("101", "201"): BETA, ("102", "202"): RuntimeError("boom")}
        )

        report = await BatchNameResolver(lookup, FakePersist()).resolve_batch(
            [ticket(1), ticket(2), ticket(3, "102", "202"), ticket(4, franchise="Acme"), ticket(5, fid="")]
        )
        stats = report.statistics

        assert stats.total_records == 5
        assert stats.stored_hits == 1
        assert stats.invalid_keys == 1
        assert stats.distinct_keys == 2
        assert stats.lookups_issued == 2
        assert stats.lookups_found == 1
        assert stats.lookup_failures == 1
        assert stats.lookup_resolved_records == 3
        assert stats.backfill_scheduled == 2
        assert stats.backfill_succeeded == 2


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelling_batch_cancels_in_flight_lookups(self):
        started = asyncio.Event()
        cancelled_lookups = []
        persist = FakePersist()

        async def lookup(franchise_id, outlet_id):
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled_lookups.append((franchise_id, outlet_id))
                raise
            return BETA

        task = asyncio.create_task(resolve_batch([ticket(1), ticket(2)], lookup, persist))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert cancelled_lookups == [("101", "201")]
        assert persist.calls == []

    @pytest.mark.asyncio
    async def test_cancelling_batch_during_drain_reports_abandoned_writes(self, reporter):
        writes_started = []
        both_started = asyncio.Event()
        cancelled_writes = []

        async def persist(record_id, franchise_name, outlet_name):
            writes_started.append(record_id)
            if len(writes_started) == 2:
                both_started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled_writes.append(record_id)
                raise

        resolver = BatchNameResolver(FakeLookup(default=BETA), persist, error_reporter=reporter)
        task = asyncio.create_task(resolver.resolve_batch([ticket(1), ticket(2)]))
        await both_started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.01)

        abandoned = reporter.errors_of(ErrorKind.PERSISTENCE_ABANDONED)
        assert sorted(error.record_id for error in abandoned) == [1, 2]
        assert {error.error_message for error in abandoned} == {"cancelled"}
        assert sorted(cancelled_writes) == [1, 2]
