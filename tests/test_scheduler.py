"""Tests for the batched fetch scheduler.

Async code is driven with ``asyncio.run``; pauses go through the fake sleep
from conftest so nothing waits on the wall clock.
"""

from __future__ import annotations

import asyncio

import pytest

from an_votes.adapters import RemoteLookupError
from an_votes.cache import DeputyCache
from an_votes.models import DeputyRecord, ResolutionState
from an_votes.scheduler import FetchScheduler


def _scheduler(cache: DeputyCache, remote, sleep, batch_size: int = 10) -> FetchScheduler:
    return FetchScheduler(
        cache,
        remote,
        batch_size=batch_size,
        inter_batch_pause_s=0.3,
        legislature="17",
        sleep=sleep,
    )


class _GatedRemote:
    """Holds every fetch until ``gate`` is set."""

    def __init__(self, inner):
        self.inner = inner
        self.gate: asyncio.Event | None = None
        self.started = 0

    async def fetch_detail(self, deputy_id: str, legislature: str | None = None) -> dict:
        self.started += 1
        await self.gate.wait()
        return await self.inner.fetch_detail(deputy_id, legislature)


class TestEnqueue:
    def test_duplicates_rejected(self, cache, remote, sleep) -> None:
        scheduler = _scheduler(cache, remote, sleep)
        assert scheduler.enqueue("PA1")
        assert not scheduler.enqueue("1")
        assert not scheduler.enqueue("pa1")
        assert not scheduler.enqueue("PO1")
        assert scheduler.queued_ids() == ([], ["PA1"])

    def test_promotion_to_priority(self, cache, remote, sleep) -> None:
        scheduler = _scheduler(cache, remote, sleep)
        scheduler.enqueue("PA1")
        scheduler.enqueue("PA2")
        assert scheduler.enqueue("PA2", priority=True)
        assert not scheduler.enqueue("PA2", priority=True)
        assert not scheduler.enqueue("PA2")
        assert scheduler.queued_ids() == (["PA2"], ["PA1"])

    def test_resolved_not_queued(self, cache, remote, sleep) -> None:
        scheduler = _scheduler(cache, remote, sleep)
        cache.merge_resolved(DeputyRecord(id="PA1", given_name="A", family_name="B"), source="store")
        assert not scheduler.enqueue("PA1", priority=True)
        assert scheduler.pending() == 0

    def test_no_drain_outside_event_loop(self, cache, remote, sleep) -> None:
        scheduler = _scheduler(cache, remote, sleep)
        scheduler.enqueue("PA1")
        assert not scheduler.is_draining
        assert remote.calls == []


class TestDrain:
    def test_concurrent_reads_fetch_once(self, cache, remote, sleep) -> None:
        scheduler = _scheduler(cache, remote, sleep)

        async def scenario() -> None:
            for raw in ("1592", "PA1592", "pa1592", 1592):
                cache.get(raw)
            assert scheduler.is_draining
            await scheduler.drain()

        asyncio.run(scenario())
        assert remote.calls == ["PA1592"]
        assert cache.display_name("PA1592") == "Jean Jaurès"
        assert cache.peek("PA1592").record.profession == "Professeur"
        assert cache.peek("PA1592").source == "remote"
        assert not scheduler.is_draining

    def test_priority_drained_first(self, cache, remote, sleep) -> None:
        scheduler = _scheduler(cache, remote, sleep, batch_size=1)

        async def scenario() -> None:
            scheduler.enqueue("PA1")
            scheduler.enqueue("PA2", priority=True)
            await scheduler.drain()

        asyncio.run(scenario())
        assert remote.calls == ["PA2", "PA1"]
        assert sleep.calls == [0.3]

    def test_batches_and_pauses(self, cache, remote, sleep) -> None:
        scheduler = _scheduler(cache, remote, sleep, batch_size=2)
        for deputy_id in ("PA1", "PA2", "PA3", "PA1592", "PA9"):
            scheduler.enqueue(deputy_id)

        asyncio.run(scheduler.drain())
        assert remote.calls == ["PA1", "PA2", "PA3", "PA1592", "PA9"]
        assert sleep.calls == [0.3, 0.3]
        assert cache.stats() == {"queued": 0, "loading": 0, "resolved": 4, "failed": 1}

    def test_parallel_drain_calls_share_one_loop(self, cache, remote, sleep) -> None:
        scheduler = _scheduler(cache, remote, sleep, batch_size=1)

        async def scenario() -> None:
            scheduler.enqueue("PA1")
            scheduler.enqueue("PA2")
            await asyncio.gather(scheduler.drain(), scheduler.drain())

        asyncio.run(scenario())
        assert remote.calls == ["PA1", "PA2"]

    def test_skips_ids_resolved_while_waiting(self, cache, remote, sleep) -> None:
        scheduler = _scheduler(cache, remote, sleep)
        scheduler.enqueue("PA1")
        cache.merge_resolved(DeputyRecord(id="PA1", given_name="A", family_name="B"), source="store")

        asyncio.run(scheduler.drain())
        assert remote.calls == []
        assert cache.peek("PA1").source == "store"

    def test_restarts_after_event_loop_closed(self, cache, remote, sleep) -> None:
        scheduler = _scheduler(cache, remote, sleep)

        async def enqueue_only() -> None:
            scheduler.enqueue("PA1")

        # The drain task is created but the loop shuts down before it finishes.
        asyncio.run(enqueue_only())
        assert not scheduler.is_draining
        asyncio.run(scheduler.drain())
        assert cache.is_cached("PA1")
        assert scheduler.pending() == 0

    def test_cancel_mid_batch_requeues_in_flight_ids(self, cache, remote, sleep) -> None:
        gated = _GatedRemote(remote)
        scheduler = _scheduler(cache, gated, sleep, batch_size=2)

        async def scenario():
            gated.gate = asyncio.Event()
            for deputy_id in ("PA1", "PA2", "PA3"):
                scheduler.enqueue(deputy_id)
            drainer = asyncio.create_task(scheduler.drain())
            while gated.started < 2:
                await asyncio.sleep(0)
            in_flight = [cache.peek(cid).state for cid in ("PA1", "PA2")]

            drainer.cancel()
            with pytest.raises(asyncio.CancelledError):
                await drainer
            after_cancel = (scheduler.queued_ids(), scheduler.is_draining)
            states = [cache.peek(cid).state for cid in ("PA1", "PA2", "PA3")]

            gated.gate.set()
            await scheduler.drain()
            return in_flight, after_cancel, states

        in_flight, after_cancel, states = asyncio.run(scenario())
        assert in_flight == [ResolutionState.LOADING, ResolutionState.LOADING]
        assert after_cancel == ((["PA1", "PA2"], ["PA3"]), False)
        assert states == [ResolutionState.QUEUED] * 3
        assert remote.calls == ["PA1", "PA2", "PA3"]
        assert all(cache.is_cached(cid) for cid in ("PA1", "PA2", "PA3"))
        assert scheduler.pending() == 0


class TestFailures:
    def test_not_found_is_terminal(self, cache, remote, sleep, clock) -> None:
        scheduler = _scheduler(cache, remote, sleep)

        async def scenario() -> None:
            cache.get("PA9")
            await scheduler.drain()
            clock.advance(3600)
            cache.get("PA9")
            await scheduler.drain()

        asyncio.run(scenario())
        entry = cache.peek("PA9")
        assert entry.state is ResolutionState.FAILED
        assert entry.not_found
        assert entry.record.display_name == "Député PA9"
        assert remote.calls == ["PA9"]

    def test_failure_isolated_within_batch(self, cache, remote, sleep) -> None:
        remote.errors["PA2"] = RemoteLookupError("HTTP 500")
        remote.errors["PA3"] = ValueError("unexpected")
        scheduler = _scheduler(cache, remote, sleep)
        for deputy_id in ("PA1", "PA2", "PA3", "PA1592"):
            scheduler.enqueue(deputy_id)

        asyncio.run(scheduler.drain())
        assert cache.is_cached("PA1")
        assert cache.is_cached("PA1592")
        for deputy_id in ("PA2", "PA3"):
            entry = cache.peek(deputy_id)
            assert entry.state is ResolutionState.FAILED
            assert entry.attempts == 1
            assert not entry.not_found

    def test_invalid_payload_marks_failed(self, cache, remote, sleep) -> None:
        remote.records["PA5"] = {"unexpected": True}
        scheduler = _scheduler(cache, remote, sleep)
        scheduler.enqueue("PA5")

        asyncio.run(scheduler.drain())
        assert cache.peek("PA5").state is ResolutionState.FAILED

    def test_retry_after_cooldown(self, cache, remote, sleep, clock) -> None:
        remote.errors["PA2"] = RemoteLookupError("timeout")
        scheduler = _scheduler(cache, remote, sleep)

        async def scenario() -> None:
            cache.get("PA2")
            await scheduler.drain()
            del remote.errors["PA2"]

            cache.get("PA2")
            assert scheduler.pending() == 0

            clock.advance(10)
            cache.get("PA2")
            await scheduler.drain()

        asyncio.run(scenario())
        assert remote.calls == ["PA2", "PA2"]
        assert cache.display_name("PA2") == "Victor Hugo"
        assert cache.peek("PA2").attempts == 0
