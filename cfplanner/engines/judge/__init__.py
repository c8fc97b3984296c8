"""Judge integration: catalog, submissions and the activity feed."""

from cfplanner.engines.judge.activity_feed import ActivityFeed, ActivityStatus, RecentProblem
from cfplanner.engines.judge.codeforces import CodeforcesJudge
from cfplanner.engines.judge.types import (
    AcceptedSolve,
    JudgeClient,
    Problem,
    SolveEvent,
    accepted_from_events,
    accepted_history,
    parse_problem_id,
)

__all__ = [
    "AcceptedSolve",
    "ActivityFeed",
    "ActivityStatus",
    "CodeforcesJudge",
    "JudgeClient",
    "Problem",
    "RecentProblem",
    "SolveEvent",
    "accepted_from_events",
    "accepted_history",
    "parse_problem_id",
]
