"""
Integration tests: SqlMasteryStore against a temp-file SQLite database.
"""

import asyncio

import pytest
import pytest_asyncio

from cfplanner.database import build_engine, build_session_maker, init_db
from cfplanner.engines.errors import AlreadyTrackedError, MasteryInvariantError
from cfplanner.engines.mastery.store import SqlMasteryStore, TrackedSolve
from cfplanner.kernel.models import MasteryRecordRow
from tests.fakes import NOW, days


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'planner.db'}")
    await init_db(engine)
    session_maker = build_session_maker(engine)
    yield SqlMasteryStore(session_maker)
    await engine.dispose()


def _solve(problem_id: str = "1520B") -> TrackedSolve:
    return TrackedSolve(problem_id=problem_id, rating=1200, topics=["graphs"], attempts=2, solved_at=NOW)


class TestSqlMasteryStore:
    @pytest.mark.asyncio
    async def test_absent_is_zero(self, sql_store):
        record = await sql_store.get("tourist", "graphs", NOW)
        assert (record.peak, record.current, record.last_activity_at) == (0.0, 0.0, None)

    @pytest.mark.asyncio
    async def test_record_solve_round_trip(self, sql_store):
        await sql_store.record_solve("tourist", "graphs", 1000.0, NOW)
        record = await sql_store.get("tourist", "graphs", NOW + days(134))
        assert record.peak == 1000.0
        assert record.current == pytest.approx(500.0)
        assert record.last_activity_at == NOW

    @pytest.mark.asyncio
    async def test_peak_grows_from_decayed_strength(self, sql_store):
        await sql_store.record_solve("tourist", "graphs", 1000.0, NOW)
        record = await sql_store.record_solve("tourist", "graphs", 600.0, NOW + days(134))
        assert record.peak == pytest.approx(1100.0)
        assert record.current == record.peak

    @pytest.mark.asyncio
    async def test_verified_solve_is_atomic_and_unique(self, sql_store):
        await sql_store.apply_verified_solve("tourist", _solve(), {"graphs": 400.0, "implementation": 100.0}, NOW)
        with pytest.raises(AlreadyTrackedError):
            await sql_store.apply_verified_solve("tourist", _solve(), {"graphs": 400.0}, NOW)

        records = await sql_store.get_all("tourist", ["graphs", "implementation"], NOW)
        assert records["graphs"].peak == 400.0
        assert records["implementation"].peak == 100.0
        assert await sql_store.tracked_problem_ids("tourist") == {"1520B"}
        assert await sql_store.is_tracked("tourist", "1520B")
        assert not await sql_store.is_tracked("petr", "1520B")

    @pytest.mark.asyncio
    async def test_concurrent_solves_lose_nothing(self, sql_store):
        deltas = [float(i) for i in range(1, 21)]
        await asyncio.gather(*(sql_store.record_solve("tourist", "graphs", d, NOW) for d in deltas))
        record = await sql_store.get("tourist", "graphs", NOW)
        assert record.peak == pytest.approx(sum(deltas))

    @pytest.mark.asyncio
    async def test_link_learner(self, sql_store):
        assert await sql_store.link_learner("tourist") is True
        assert await sql_store.link_learner("tourist") is False
        assert await sql_store.is_linked("tourist")
        assert not await sql_store.is_linked("petr")

    @pytest.mark.asyncio
    async def test_corrupt_row_raises(self, sql_store):
        async with sql_store._session_maker() as session:
            async with session.begin():
                session.add(MasteryRecordRow(
                    handle="tourist", topic_slug="graphs", peak=100.0, current=250.0, last_activity_at=NOW,
                ))
        with pytest.raises(MasteryInvariantError):
            await sql_store.get("tourist", "graphs", NOW)
