"""
Judge-facing types and the client contract.

The judge is authoritative for problem metadata and verdicts. Everything here
is read-only; nothing is written back to the judge.
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from cfplanner.engines.errors import ProblemNotFoundError

ACCEPTED = "OK"

# Verdicts that do not count as an attempt
IGNORED_VERDICTS = frozenset({"COMPILATION_ERROR", "SKIPPED", "TESTING"})

PROBLEM_ID_RE = re.compile(r"^(\d+)([A-Za-z0-9]+)$")


class Problem(BaseModel):
    """A catalog problem. `tags` holds topic slugs, not raw judge tags."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    rating: int = 0
    tags: Tuple[str, ...] = ()

    @property
    def is_rated(self) -> bool:
        return self.rating > 0


class SolveEvent(BaseModel):
    """One judge submission: (problem, verdict, timestamp)."""

    problem: Problem
    verdict: str
    submitted_at: datetime

    @property
    def accepted(self) -> bool:
        return self.verdict == ACCEPTED


class AcceptedSolve(BaseModel):
    """First accepted verdict for a problem with the attempts it took."""

    problem: Problem
    attempts: int = Field(default=1, ge=1)
    solved_at: datetime


def parse_problem_id(problem_id: str) -> Tuple[int, str]:
    """'1520B' -> (1520, 'B'). Malformed ids raise ProblemNotFoundError."""
    match = PROBLEM_ID_RE.match(problem_id or "")
    if not match:
        raise ProblemNotFoundError(problem_id)
    return int(match.group(1)), match.group(2)


def accepted_from_events(events: Iterable[SolveEvent], problem_id: str) -> Optional[AcceptedSolve]:
    """
    Walk the problem's submissions oldest first up to the first OK.

    Every verdict outside IGNORED_VERDICTS counts as an attempt, the OK
    included. None when the problem was never accepted.
    """
    relevant = sorted(
        (e for e in events if e.problem.id == problem_id),
        key=lambda e: e.submitted_at,
    )
    attempts = 0
    for event in relevant:
        if event.verdict in IGNORED_VERDICTS:
            continue
        attempts += 1
        if event.accepted:
            return AcceptedSolve(problem=event.problem, attempts=attempts, solved_at=event.submitted_at)
    return None


def accepted_history(events: Iterable[SolveEvent]) -> List[AcceptedSolve]:
    """Every accepted problem in the history, oldest solve first."""
    by_problem: Dict[str, List[SolveEvent]] = {}
    for event in events:
        by_problem.setdefault(event.problem.id, []).append(event)
    solves = []
    for problem_id, problem_events in by_problem.items():
        solve = accepted_from_events(problem_events, problem_id)
        if solve is not None:
            solves.append(solve)
    solves.sort(key=lambda s: (s.solved_at, s.problem.id))
    return solves


class JudgeClient(ABC):
    """What the engines need from the judge."""

    @abstractmethod
    async def list_problems_by_tag(self, topic: str) -> List[Problem]:
        """Catalog problems mapped to `topic`."""

    @abstractmethod
    async def fetch_recent_submissions(self, handle: str) -> List[SolveEvent]:
        """The learner's submissions. Unknown handles raise HandleNotFoundError."""

    @abstractmethod
    async def handle_exists(self, handle: str) -> bool:
        ...

    async def find_accepted(self, handle: str, problem_id: str) -> Optional[AcceptedSolve]:
        parse_problem_id(problem_id)
        return accepted_from_events(await self.fetch_recent_submissions(handle), problem_id)

    async def confirm_solved(self, handle: str, problem_id: str) -> bool:
        return await self.find_accepted(handle, problem_id) is not None

    async def solved_problem_ids(self, handle: str) -> List[str]:
        events = await self.fetch_recent_submissions(handle)
        return sorted({e.problem.id for e in events if e.accepted})
