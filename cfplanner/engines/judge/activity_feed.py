"""
Activity feed - recent solved and unsolved problems, straight from the judge.

Read-only projection; nothing here touches the mastery store.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel

from cfplanner.engines.judge.types import JudgeClient, Problem, SolveEvent


class ActivityStatus(str, Enum):
    SOLVED = "solved"
    UNSOLVED = "unsolved"


class RecentProblem(BaseModel):
    problem: Problem
    at: datetime


class ActivityFeed:
    """Groups the learner's submissions by problem."""

    def __init__(self, judge: JudgeClient, default_limit: int = 10):
        self.judge = judge
        self.default_limit = default_limit

    async def recent(
        self,
        handle: str,
        status: ActivityStatus,
        limit: Optional[int] = None,
    ) -> List[RecentProblem]:
        """
        Solved: problems with an OK verdict, stamped with the first OK.
        Unsolved: problems with no OK at all, stamped with the latest attempt.
        Newest first.
        """
        limit = self.default_limit if limit is None else limit
        if limit <= 0:
            return []
        events = await self.judge.fetch_recent_submissions(handle)

        by_problem: Dict[str, List[SolveEvent]] = {}
        for event in events:
            by_problem.setdefault(event.problem.id, []).append(event)

        items: List[RecentProblem] = []
        for problem_events in by_problem.values():
            accepted = [e for e in problem_events if e.accepted]
            if status == ActivityStatus.SOLVED and accepted:
                first = min(accepted, key=lambda e: e.submitted_at)
                items.append(RecentProblem(problem=first.problem, at=first.submitted_at))
            elif status == ActivityStatus.UNSOLVED and not accepted:
                latest = max(problem_events, key=lambda e: e.submitted_at)
                items.append(RecentProblem(problem=latest.problem, at=latest.submitted_at))

        items.sort(key=lambda item: (item.at, item.problem.id), reverse=True)
        return items[:limit]
