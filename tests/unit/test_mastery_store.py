"""Unit tests for the in-memory mastery store."""

import asyncio
from datetime import datetime
from typing import Dict, Mapping, Optional

import pytest

from cfplanner.engines.errors import AlreadyTrackedError, MasteryInvariantError
from cfplanner.engines.mastery.store import (
    InMemoryMasteryStore,
    KeyedLocks,
    MasteryRecord,
    TrackedSolve,
    next_record,
)
from tests.fakes import NOW, days


class UnlockedStore(InMemoryMasteryStore):
    """Same store without per-key locks and with a yield between read and write."""

    def __init__(self):
        super().__init__()
        self._locks.hold = self._no_lock

    @staticmethod
    def _no_lock(keys):
        return _NullAsyncContext()

    async def _apply(
        self,
        handle: str,
        solve: Optional[TrackedSolve],
        deltas: Mapping[str, float],
        now: datetime,
    ) -> Dict[str, MasteryRecord]:
        stale = {topic: self._records.get((handle, topic)) for topic in deltas}
        await asyncio.sleep(0)
        for topic, delta in deltas.items():
            self._records[(handle, topic)] = next_record(handle, topic, stale[topic], delta, now)
        return {topic: self._records[(handle, topic)] for topic in deltas}


class _NullAsyncContext:
    async def __aenter__(self):
        return None

    async def __aexit__(self, *exc):
        return False


def _solve(problem_id: str = "1520B", topics=("graphs",)) -> TrackedSolve:
    return TrackedSolve(problem_id=problem_id, rating=1200, topics=list(topics), attempts=1, solved_at=NOW)


class TestReads:
    @pytest.mark.asyncio
    async def test_absent_record_is_zero(self, store):
        record = await store.get("tourist", "graphs", NOW)
        assert (record.peak, record.current, record.last_activity_at) == (0.0, 0.0, None)

    @pytest.mark.asyncio
    async def test_get_all_zero_fills(self, store):
        await store.record_solve("tourist", "graphs", 300.0, NOW)
        records = await store.get_all("tourist", ["graphs", "math"], NOW)
        assert records["graphs"].peak == 300.0
        assert records["math"].peak == 0.0

    @pytest.mark.asyncio
    async def test_read_applies_decay(self, store):
        await store.record_solve("tourist", "graphs", 1000.0, NOW)
        record = await store.get("tourist", "graphs", NOW + days(134))
        assert record.peak == 1000.0
        assert record.current == pytest.approx(500.0)

    @pytest.mark.asyncio
    async def test_corrupt_record_raises(self, store):
        store._records[("tourist", "graphs")] = MasteryRecord(
            handle="tourist", topic="graphs", peak=100.0, current=200.0, last_activity_at=NOW,
        )
        with pytest.raises(MasteryInvariantError):
            await store.get("tourist", "graphs", NOW)


class TestRecordSolve:
    @pytest.mark.asyncio
    async def test_first_solve(self, store):
        record = await store.record_solve("tourist", "graphs", 300.0, NOW)
        assert record.peak == 300.0
        assert record.current == record.peak
        assert record.last_activity_at == NOW

    @pytest.mark.asyncio
    async def test_peak_never_decreases(self, store):
        await store.record_solve("tourist", "graphs", 1000.0, NOW)
        record = await store.record_solve("tourist", "graphs", 100.0, NOW + days(300))
        assert record.peak == 1000.0
        assert record.current == 1000.0
        assert record.last_activity_at == NOW + days(300)

    @pytest.mark.asyncio
    async def test_peak_grows_from_decayed_strength(self, store):
        await store.record_solve("tourist", "graphs", 1000.0, NOW)
        record = await store.record_solve("tourist", "graphs", 600.0, NOW + days(134))
        assert record.peak == pytest.approx(1100.0)

    @pytest.mark.asyncio
    async def test_last_activity_never_moves_back(self, store):
        await store.record_solve("tourist", "graphs", 500.0, NOW)
        record = await store.record_solve("tourist", "graphs", 100.0, NOW - days(30))
        assert record.last_activity_at == NOW
        assert record.peak == 600.0

    @pytest.mark.asyncio
    async def test_negative_delta_rejected(self, store):
        with pytest.raises(ValueError):
            await store.record_solve("tourist", "graphs", -1.0, NOW)

    @pytest.mark.asyncio
    async def test_concurrent_solves_lose_nothing(self, store):
        deltas = [float(i) for i in range(1, 101)]
        await asyncio.gather(*(store.record_solve("tourist", "graphs", d, NOW) for d in deltas))
        record = await store.get("tourist", "graphs", NOW)
        assert record.peak == pytest.approx(sum(deltas))
        assert len(store._locks) == 0

    @pytest.mark.asyncio
    async def test_stress_harness_detects_lost_updates(self):
        unlocked = UnlockedStore()
        deltas = [float(i) for i in range(1, 101)]
        await asyncio.gather(*(unlocked.record_solve("tourist", "graphs", d, NOW) for d in deltas))
        record = await unlocked.get("tourist", "graphs", NOW)
        assert record.peak < sum(deltas)

    @pytest.mark.asyncio
    async def test_other_topics_and_learners_untouched(self, store):
        await store.record_solve("tourist", "graphs", 300.0, NOW)
        assert (await store.get("tourist", "math", NOW)).peak == 0.0
        assert (await store.get("petr", "graphs", NOW)).peak == 0.0


class TestVerifiedSolves:
    @pytest.mark.asyncio
    async def test_applies_every_delta_and_tracks(self, store):
        updated = await store.apply_verified_solve(
            "tourist", _solve(), {"graphs": 500.0, "data structures": 200.0}, NOW,
        )
        assert updated["graphs"].peak == 500.0
        assert updated["data structures"].peak == 200.0
        assert await store.is_tracked("tourist", "1520B")
        assert await store.tracked_problem_ids("tourist") == {"1520B"}

    @pytest.mark.asyncio
    async def test_duplicate_rejected_without_writing(self, store):
        await store.apply_verified_solve("tourist", _solve(), {"graphs": 500.0}, NOW)
        with pytest.raises(AlreadyTrackedError) as exc:
            await store.apply_verified_solve("tourist", _solve(), {"graphs": 500.0}, NOW)
        assert "already solved" in str(exc.value)
        assert (await store.get("tourist", "graphs", NOW)).peak == 500.0

    @pytest.mark.asyncio
    async def test_no_topics_still_tracked(self, store):
        await store.apply_verified_solve("tourist", _solve("4A", topics=()), {}, NOW)
        assert await store.is_tracked("tourist", "4A")


class TestLearners:
    @pytest.mark.asyncio
    async def test_link_once(self, store):
        assert not await store.is_linked("tourist")
        assert await store.link_learner("tourist") is True
        assert await store.link_learner("tourist") is False
        assert await store.is_linked("tourist")


class TestKeyedLocks:
    @pytest.mark.asyncio
    async def test_entry_lives_while_held_or_awaited(self):
        locks = KeyedLocks()
        order = []

        async def worker(name):
            async with locks.hold([("tourist", "1520B")]):
                order.append(name)
                await asyncio.sleep(0.01)

        first = asyncio.create_task(worker("first"))
        second = asyncio.create_task(worker("second"))
        await asyncio.sleep(0.005)
        assert len(locks) == 1

        await asyncio.gather(first, second)
        assert order == ["first", "second"]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_entries_released_after_error(self):
        locks = KeyedLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold([("tourist", "topic", "graphs"), ("tourist", "topic", "math")]):
                raise RuntimeError("boom")
        assert len(locks) == 0
