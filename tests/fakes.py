"""
Test doubles and helpers shared by the unit, integration and system tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Set

from cfplanner.engines.errors import HandleNotFoundError, UpstreamUnavailableError
from cfplanner.engines.judge.types import JudgeClient, Problem, SolveEvent

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_problem(problem_id: str, rating: int, *topics: str, name: Optional[str] = None) -> Problem:
    return Problem(id=problem_id, name=name or f"Problem {problem_id}", rating=rating, tags=tuple(topics))


class FakeJudge(JudgeClient):
    """In-memory judge: a fixed catalog plus per-handle submission lists."""

    def __init__(self, catalog: Iterable[Problem] = (), handles: Iterable[str] = ()):
        self.catalog: List[Problem] = list(catalog)
        self.submissions: Dict[str, List[SolveEvent]] = {h: [] for h in handles}
        self.unavailable = False
        self.delay = 0.0
        self.status_calls = 0

    def add_handle(self, handle: str) -> None:
        self.submissions.setdefault(handle, [])

    def submit(self, handle: str, problem: Problem, verdict: str = "OK", at: datetime = NOW) -> None:
        self.add_handle(handle)
        self.submissions[handle].append(SolveEvent(problem=problem, verdict=verdict, submitted_at=at))

    async def list_problems_by_tag(self, topic: str) -> List[Problem]:
        if self.unavailable:
            raise UpstreamUnavailableError()
        return [p for p in self.catalog if topic in p.tags]

    async def fetch_recent_submissions(self, handle: str) -> List[SolveEvent]:
        self.status_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.unavailable:
            raise UpstreamUnavailableError()
        if handle not in self.submissions:
            raise HandleNotFoundError(handle)
        # Newest first, like the real API
        return sorted(self.submissions[handle], key=lambda e: e.submitted_at, reverse=True)

    async def handle_exists(self, handle: str) -> bool:
        if self.unavailable:
            raise UpstreamUnavailableError()
        return handle in self.submissions


def days(n: float) -> timedelta:
    return timedelta(days=n)


def problem_ids(problems: Iterable[Problem]) -> Set[str]:
    return {p.id for p in problems}
