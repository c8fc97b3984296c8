"""
Problem schemas - recommendations and recent activity.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from cfplanner.engines.judge.activity_feed import RecentProblem
from cfplanner.engines.judge.types import Problem


class ProblemOut(BaseModel):
    id: str
    name: str
    rating: int
    tags: List[str]

    @classmethod
    def from_problem(cls, problem: Problem) -> "ProblemOut":
        return cls(id=problem.id, name=problem.name, rating=problem.rating, tags=list(problem.tags))


class RecentSolveOut(ProblemOut):
    """A recent activity row. `solvedAt` is the last attempt for unsolved problems."""

    model_config = ConfigDict(populate_by_name=True)

    solved_at: datetime = Field(alias="solvedAt")

    @classmethod
    def from_recent(cls, item: RecentProblem) -> "RecentSolveOut":
        problem = item.problem
        return cls(
            id=problem.id,
            name=problem.name,
            rating=problem.rating,
            tags=list(problem.tags),
            solved_at=item.at,
        )
