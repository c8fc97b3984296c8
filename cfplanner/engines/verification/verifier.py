"""
Submission verifier - confirms claimed solves with the judge and credits mastery.

Each claim runs through the verification state machine and ends in one
terminal state, returned as a VerificationOutcome. Claims for the same
(learner, problem) are serialized; the ledger's unique key is the second
guard, so a solve is credited at most once.

sync() links a handle and replays its accepted history through the same
credit path, oldest solve first.
"""

from datetime import datetime
from typing import Dict, Optional, Set

from pydantic import BaseModel, Field

from cfplanner.engines.errors import (
    AlreadyTrackedError,
    HandleNotFoundError,
    NotYetConfirmedError,
    ProblemNotFoundError,
    UpstreamUnavailableError,
)
from cfplanner.engines.judge.types import AcceptedSolve, JudgeClient, accepted_history, parse_problem_id
from cfplanner.engines.mastery.credit import DEFAULT_CREDIT_POLICY, CreditPolicy
from cfplanner.engines.mastery.store import KeyedLocks, MasteryStore, TrackedSolve, utcnow
from cfplanner.logging_config import get_logger
from cfplanner.orchestration.state_machine import VerificationClaim, VerificationState
from cfplanner.pedagogy.topic_graph import TopicGraph

logger = get_logger(__name__)


class VerificationOutcome(BaseModel):
    """Terminal result of one claim."""

    handle: str
    problem_id: str
    state: VerificationState
    reason: Optional[str] = None
    credited: Dict[str, float] = Field(default_factory=dict)
    retry_after: Optional[int] = None

    @property
    def confirmed(self) -> bool:
        return self.state == VerificationState.CONFIRMED


class SyncResult(BaseModel):
    handle: str
    imported: int = 0
    newly_linked: bool = False


def normalize_problem_id(problem_id: str) -> str:
    """' 1520b ' -> '1520B'."""
    return (problem_id or "").strip().upper()


class SubmissionVerifier:
    def __init__(
        self,
        graph: TopicGraph,
        store: MasteryStore,
        judge: JudgeClient,
        credit_policy: CreditPolicy = DEFAULT_CREDIT_POLICY,
    ):
        self.graph = graph
        self.store = store
        self.judge = judge
        self.credit_policy = credit_policy
        self._locks = KeyedLocks()
        self._in_flight: Dict[str, Set[str]] = {}

    def in_flight(self, handle: str) -> Set[str]:
        """Problem ids with a claim currently being verified for `handle`."""
        return set(self._in_flight.get(handle, ()))

    def _finish(
        self,
        claim: VerificationClaim,
        state: VerificationState,
        reason: Optional[str] = None,
        credited: Optional[Dict[str, float]] = None,
        retry_after: Optional[int] = None,
    ) -> VerificationOutcome:
        claim.transition(state, reason)
        logger.info(
            "Verification finished",
            extra={"handle": claim.handle, "problem_id": claim.problem_id, "state": state.value},
        )
        return VerificationOutcome(
            handle=claim.handle,
            problem_id=claim.problem_id,
            state=state,
            reason=claim.reason,
            credited=credited or {},
            retry_after=retry_after,
        )

    async def verify(
        self,
        handle: str,
        problem_id: str,
        time_spent_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> VerificationOutcome:
        """Verify one claim. Never raises for judge or idempotency outcomes."""
        claim = VerificationClaim(
            handle=handle,
            problem_id=normalize_problem_id(problem_id),
            time_spent_minutes=time_spent_minutes,
        )
        try:
            parse_problem_id(claim.problem_id)
        except ProblemNotFoundError as e:
            return self._finish(claim, VerificationState.NOT_FOUND, str(e))
        if not await self.store.is_linked(handle):
            return self._finish(
                claim,
                VerificationState.NOT_FOUND,
                str(HandleNotFoundError(handle, "not found; sync the handle first")),
            )

        async with self._locks.hold([(handle, claim.problem_id)]):
            pending = self._in_flight.setdefault(handle, set())
            pending.add(claim.problem_id)
            try:
                return await self._verify_locked(claim, now)
            finally:
                pending.discard(claim.problem_id)
                if not pending:
                    self._in_flight.pop(handle, None)

    async def _verify_locked(self, claim: VerificationClaim, now: Optional[datetime]) -> VerificationOutcome:
        handle, problem_id = claim.handle, claim.problem_id
        if await self.store.is_tracked(handle, problem_id):
            return self._finish(
                claim,
                VerificationState.ALREADY_TRACKED,
                str(AlreadyTrackedError(handle, problem_id)),
            )

        claim.transition(VerificationState.VERIFYING)
        try:
            solve = await self.judge.find_accepted(handle, problem_id)
        except HandleNotFoundError as e:
            return self._finish(claim, VerificationState.NOT_FOUND, str(e))
        except UpstreamUnavailableError as e:
            return self._finish(
                claim,
                VerificationState.JUDGE_UNAVAILABLE,
                str(e),
                retry_after=e.retry_after,
            )
        if solve is None:
            return self._finish(
                claim,
                VerificationState.NOT_YET_SOLVED,
                str(NotYetConfirmedError(problem_id)),
            )

        try:
            credited = await self._credit(handle, solve, claim.time_spent_minutes, now or utcnow())
        except AlreadyTrackedError as e:
            return self._finish(claim, VerificationState.ALREADY_TRACKED, str(e))
        return self._finish(claim, VerificationState.CONFIRMED, credited=credited)

    async def _credit(
        self,
        handle: str,
        solve: AcceptedSolve,
        time_spent_minutes: Optional[int],
        now: datetime,
    ) -> Dict[str, float]:
        """Compute per-topic deltas and write them with the ledger row in one unit."""
        problem = solve.problem
        credits = self.credit_policy.credits(
            self.graph,
            problem.rating,
            solve.attempts,
            problem.tags,
            time_spent_minutes,
        )
        records = await self.store.get_all(handle, credits, now)
        deltas = self.credit_policy.rating_deltas(
            credits,
            {topic: record.current for topic, record in records.items()},
        )
        await self.store.apply_verified_solve(
            handle,
            TrackedSolve(
                problem_id=problem.id,
                rating=problem.rating,
                topics=list(problem.tags),
                attempts=solve.attempts,
                solved_at=solve.solved_at,
            ),
            deltas,
            now,
        )
        return deltas

    async def sync(self, handle: str) -> SyncResult:
        """
        Link `handle` and import every accepted problem not yet tracked.

        Unknown handles raise HandleNotFoundError; judge failures raise
        UpstreamUnavailableError. Re-running is harmless.
        """
        if not await self.judge.handle_exists(handle):
            raise HandleNotFoundError(handle)
        newly_linked = await self.store.link_learner(handle)

        events = await self.judge.fetch_recent_submissions(handle)
        tracked = await self.store.tracked_problem_ids(handle)
        imported = 0
        for solve in accepted_history(events):
            if solve.problem.id in tracked:
                continue
            async with self._locks.hold([(handle, solve.problem.id)]):
                try:
                    await self._credit(handle, solve, None, solve.solved_at)
                except AlreadyTrackedError:
                    # Credited by a concurrent verify
                    continue
            imported += 1

        logger.info(
            "Handle synced",
            extra={"handle": handle, "imported": imported, "newly_linked": newly_linked},
        )
        return SyncResult(handle=handle, imported=imported, newly_linked=newly_linked)
