"""
Mastery Store - per-(learner, topic) strength records.

The only writer is the verified-solve path. Writes to one (learner, topic) key
are serialized with a per-key asyncio lock (row locks on PostgreSQL as well),
so concurrent solves never lose an update. Reads return whole records and
apply decay at read time.

Two implementations share the contract:
- InMemoryMasteryStore: single process, tests and local development
- SqlMasteryStore: async SQLAlchemy, production
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Hashable, Iterable, List, Mapping, Optional, Set, Tuple

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cfplanner.engines.errors import AlreadyTrackedError, MasteryInvariantError
from cfplanner.engines.mastery.decay import DEFAULT_POLICY, DecayPolicy, current_strength
from cfplanner.kernel.models import Learner, MasteryRecordRow, TrackedProblem
from cfplanner.logging_config import get_logger

logger = get_logger(__name__)

# Float slack when checking current <= peak
_EPSILON = 1e-6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MasteryRecord(BaseModel):
    """Strength in one topic. Absent records read as the zero record."""

    handle: str
    topic: str
    peak: float = 0.0
    current: float = 0.0
    last_activity_at: Optional[datetime] = None

    @classmethod
    def zero(cls, handle: str, topic: str) -> "MasteryRecord":
        return cls(handle=handle, topic=topic)


class TrackedSolve(BaseModel):
    """A credited solve, as written to the idempotency ledger."""

    problem_id: str
    rating: int = 0
    topics: List[str] = Field(default_factory=list)
    attempts: int = 1
    solved_at: datetime


def check_record(record: MasteryRecord) -> MasteryRecord:
    """Raise MasteryInvariantError unless 0 <= current <= peak."""
    if record.peak < 0 or record.current < 0 or record.current > record.peak + _EPSILON:
        logger.error(
            "Mastery record violates invariant",
            extra={
                "handle": record.handle,
                "topic": record.topic,
                "peak": record.peak,
                "current": record.current,
            },
        )
        raise MasteryInvariantError(
            f"mastery record ({record.handle}, {record.topic}) has current={record.current} peak={record.peak}"
        )
    return record


def next_record(
    handle: str,
    topic: str,
    stored: Optional[MasteryRecord],
    rating_delta: float,
    now: datetime,
    policy: DecayPolicy = DEFAULT_POLICY,
) -> MasteryRecord:
    """
    Apply one solve: peak' = max(peak, decayed current + delta), current' = peak'.

    last_activity_at never moves backwards, so replaying older history after a
    newer solve does not refresh the record into the past.
    """
    if stored is None:
        stored = MasteryRecord.zero(handle, topic)
    decayed = current_strength(stored.peak, stored.last_activity_at, now, policy)
    peak = max(stored.peak, decayed + rating_delta)
    last = now if stored.last_activity_at is None else max(stored.last_activity_at, now)
    return MasteryRecord(handle=handle, topic=topic, peak=peak, current=peak, last_activity_at=last)


class KeyedLocks:
    """
    One asyncio.Lock per key while anyone holds or waits for it.

    Entries are reference-counted and dropped when the last holder leaves,
    so the map only ever contains keys that are in use.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def _held(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    @asynccontextmanager
    async def hold(self, keys: Iterable[Tuple[str, ...]]) -> AsyncIterator[None]:
        """Acquire several keys in sorted order so overlapping holders cannot deadlock."""
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self._held(key))
            yield


class MasteryStore(ABC):
    """Contract shared by the in-memory and SQL stores."""

    def __init__(self, decay_policy: DecayPolicy = DEFAULT_POLICY):
        self.decay_policy = decay_policy
        self._locks = KeyedLocks()

    # Storage primitives

    @abstractmethod
    async def _load(self, handle: str, topic: str) -> Optional[MasteryRecord]:
        """Stored (undecayed) record or None."""

    @abstractmethod
    async def _load_all(self, handle: str) -> Dict[str, MasteryRecord]:
        """All stored records of a learner keyed by topic."""

    @abstractmethod
    async def _apply(
        self,
        handle: str,
        solve: Optional[TrackedSolve],
        deltas: Mapping[str, float],
        now: datetime,
    ) -> Dict[str, MasteryRecord]:
        """Atomically add the ledger row (if any) and apply every delta. Caller holds the locks."""

    @abstractmethod
    async def is_tracked(self, handle: str, problem_id: str) -> bool:
        ...

    @abstractmethod
    async def tracked_problem_ids(self, handle: str) -> Set[str]:
        ...

    @abstractmethod
    async def link_learner(self, handle: str) -> bool:
        """Register a handle. Returns True when it was not linked before."""

    @abstractmethod
    async def is_linked(self, handle: str) -> bool:
        ...

    # Public contract

    def _decayed(self, stored: MasteryRecord, now: datetime) -> MasteryRecord:
        check_record(stored)
        return stored.model_copy(update={
            "current": current_strength(stored.peak, stored.last_activity_at, now, self.decay_policy),
        })

    async def get(self, handle: str, topic: str, now: Optional[datetime] = None) -> MasteryRecord:
        """Record with decay applied at `now`; the zero record when the topic is untouched."""
        stored = await self._load(handle, topic)
        if stored is None:
            return MasteryRecord.zero(handle, topic)
        return self._decayed(stored, now or utcnow())

    async def get_all(
        self,
        handle: str,
        topics: Iterable[str],
        now: Optional[datetime] = None,
    ) -> Dict[str, MasteryRecord]:
        """Decayed records for every requested topic, zero-filled."""
        now = now or utcnow()
        stored = await self._load_all(handle)
        out: Dict[str, MasteryRecord] = {}
        for topic in topics:
            record = stored.get(topic)
            out[topic] = self._decayed(record, now) if record else MasteryRecord.zero(handle, topic)
        return out

    async def record_solve(
        self,
        handle: str,
        topic: str,
        rating_delta: float,
        now: Optional[datetime] = None,
    ) -> MasteryRecord:
        """Apply one solve to one topic; returns the updated record (current == peak)."""
        if rating_delta < 0:
            raise ValueError("rating_delta must be >= 0")
        now = now or utcnow()
        async with self._locks.hold([(handle, "topic", topic)]):
            updated = await self._apply(handle, None, {topic: rating_delta}, now)
        return updated[topic]

    async def apply_verified_solve(
        self,
        handle: str,
        solve: TrackedSolve,
        deltas: Mapping[str, float],
        now: Optional[datetime] = None,
    ) -> Dict[str, MasteryRecord]:
        """
        Credit a verified solve: ledger row plus every topic delta, all or nothing.

        Raises AlreadyTrackedError when the (handle, problem) pair is already
        in the ledger; nothing is written in that case.
        """
        if any(d < 0 for d in deltas.values()):
            raise ValueError("rating deltas must be >= 0")
        now = now or utcnow()
        keys = [(handle, "topic", topic) for topic in deltas]
        keys.append((handle, "problem", solve.problem_id))
        async with self._locks.hold(keys):
            return await self._apply(handle, solve, deltas, now)


class InMemoryMasteryStore(MasteryStore):
    """Dict-backed store. Records are replaced whole, so readers never see half an update."""

    def __init__(self, decay_policy: DecayPolicy = DEFAULT_POLICY):
        super().__init__(decay_policy)
        self._records: Dict[Tuple[str, str], MasteryRecord] = {}
        self._tracked: Dict[str, Dict[str, TrackedSolve]] = {}
        self._learners: Dict[str, datetime] = {}

    async def _load(self, handle: str, topic: str) -> Optional[MasteryRecord]:
        return self._records.get((handle, topic))

    async def _load_all(self, handle: str) -> Dict[str, MasteryRecord]:
        return {topic: r for (h, topic), r in self._records.items() if h == handle}

    async def _apply(
        self,
        handle: str,
        solve: Optional[TrackedSolve],
        deltas: Mapping[str, float],
        now: datetime,
    ) -> Dict[str, MasteryRecord]:
        ledger = self._tracked.setdefault(handle, {})
        if solve is not None and solve.problem_id in ledger:
            raise AlreadyTrackedError(handle, solve.problem_id)
        updated = {
            topic: next_record(handle, topic, self._records.get((handle, topic)), delta, now, self.decay_policy)
            for topic, delta in deltas.items()
        }
        # No await between computing and publishing
        if solve is not None:
            ledger[solve.problem_id] = solve
        for topic, record in updated.items():
            self._records[(handle, topic)] = record
        return updated

    async def is_tracked(self, handle: str, problem_id: str) -> bool:
        return problem_id in self._tracked.get(handle, {})

    async def tracked_problem_ids(self, handle: str) -> Set[str]:
        return set(self._tracked.get(handle, {}))

    async def link_learner(self, handle: str) -> bool:
        if handle in self._learners:
            return False
        self._learners[handle] = utcnow()
        return True

    async def is_linked(self, handle: str) -> bool:
        return handle in self._learners


class SqlMasteryStore(MasteryStore):
    """
    Async SQLAlchemy store. Each public call runs in its own transaction.

    Row locks (SELECT ... FOR UPDATE) back up the in-process key locks when
    several workers share one PostgreSQL database; SQLite ignores them.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        decay_policy: DecayPolicy = DEFAULT_POLICY,
    ):
        super().__init__(decay_policy)
        self._session_maker = session_maker

    @staticmethod
    def _row_to_record(row: MasteryRecordRow) -> MasteryRecord:
        return MasteryRecord(
            handle=row.handle,
            topic=row.topic_slug,
            peak=row.peak,
            current=row.current,
            last_activity_at=row.last_activity_at,
        )

    async def _load(self, handle: str, topic: str) -> Optional[MasteryRecord]:
        async with self._session_maker() as session:
            q = select(MasteryRecordRow).where(
                MasteryRecordRow.handle == handle,
                MasteryRecordRow.topic_slug == topic,
            )
            row = (await session.execute(q)).scalar_one_or_none()
            return self._row_to_record(row) if row else None

    async def _load_all(self, handle: str) -> Dict[str, MasteryRecord]:
        async with self._session_maker() as session:
            q = select(MasteryRecordRow).where(MasteryRecordRow.handle == handle)
            rows = (await session.execute(q)).scalars().all()
            return {row.topic_slug: self._row_to_record(row) for row in rows}

    async def _apply(
        self,
        handle: str,
        solve: Optional[TrackedSolve],
        deltas: Mapping[str, float],
        now: datetime,
    ) -> Dict[str, MasteryRecord]:
        updated: Dict[str, MasteryRecord] = {}
        async with self._session_maker() as session:
            async with session.begin():
                if solve is not None:
                    session.add(TrackedProblem(
                        handle=handle,
                        problem_id=solve.problem_id,
                        rating=solve.rating,
                        topics=list(solve.topics),
                        attempts=solve.attempts,
                        solved_at=solve.solved_at,
                    ))
                    try:
                        await session.flush()
                    except IntegrityError:
                        raise AlreadyTrackedError(handle, solve.problem_id) from None

                if deltas:
                    q = (
                        select(MasteryRecordRow)
                        .where(
                            MasteryRecordRow.handle == handle,
                            MasteryRecordRow.topic_slug.in_(list(deltas)),
                        )
                        .with_for_update()
                    )
                    rows = {r.topic_slug: r for r in (await session.execute(q)).scalars().all()}
                    for topic in sorted(deltas):
                        row = rows.get(topic)
                        stored = self._row_to_record(row) if row else None
                        record = next_record(handle, topic, stored, deltas[topic], now, self.decay_policy)
                        if row is None:
                            row = MasteryRecordRow(handle=handle, topic_slug=topic)
                            session.add(row)
                        row.peak = record.peak
                        row.current = record.current
                        row.last_activity_at = record.last_activity_at
                        updated[topic] = record
        return updated

    async def is_tracked(self, handle: str, problem_id: str) -> bool:
        async with self._session_maker() as session:
            q = select(TrackedProblem.id).where(
                TrackedProblem.handle == handle,
                TrackedProblem.problem_id == problem_id,
            )
            return (await session.execute(q)).first() is not None

    async def tracked_problem_ids(self, handle: str) -> Set[str]:
        async with self._session_maker() as session:
            q = select(TrackedProblem.problem_id).where(TrackedProblem.handle == handle)
            return set((await session.execute(q)).scalars().all())

    async def link_learner(self, handle: str) -> bool:
        async with self._session_maker() as session:
            async with session.begin():
                if await session.get(Learner, handle) is not None:
                    return False
                session.add(Learner(handle=handle))
                try:
                    await session.flush()
                except IntegrityError:
                    # Linked concurrently by another request
                    return False
        logger.info("Learner linked", extra={"handle": handle})
        return True

    async def is_linked(self, handle: str) -> bool:
        async with self._session_maker() as session:
            return await session.get(Learner, handle) is not None
