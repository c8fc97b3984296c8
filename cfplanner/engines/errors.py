"""
Domain errors shared by the engines.

The API layer maps each family to one HTTP status; see `cfplanner.main`.
"""

from typing import Optional


class PlannerError(Exception):
    """Base class for all domain errors."""


class NotFoundError(PlannerError):
    """Unknown learner, topic or problem. Client error, surfaced verbatim."""


class TopicNotFoundError(NotFoundError):
    def __init__(self, topic: str):
        self.topic = topic
        super().__init__(f"topic '{topic}' not found")


class HandleNotFoundError(NotFoundError):
    def __init__(self, handle: str, reason: str = "not found or invalid"):
        self.handle = handle
        super().__init__(f"handle '{handle}' {reason}")


class ProblemNotFoundError(NotFoundError):
    def __init__(self, problem_id: str):
        self.problem_id = problem_id
        super().__init__(f"problem id '{problem_id}' not found or invalid")


class AlreadyTrackedError(PlannerError):
    """The learner's solve of this problem is already credited."""

    def __init__(self, handle: str, problem_id: str):
        self.handle = handle
        self.problem_id = problem_id
        super().__init__(f"problem {problem_id} already solved and tracked")


class NotYetConfirmedError(PlannerError):
    """The judge has no accepted verdict yet. The caller decides when to retry."""

    def __init__(self, problem_id: str):
        self.problem_id = problem_id
        super().__init__(
            f"problem {problem_id} not solved yet according to the judge; "
            "wait a minute if you just submitted"
        )


class UpstreamUnavailableError(PlannerError):
    """The judge timed out, errored, or returned something unparseable."""

    def __init__(self, message: str = "judge unavailable", retry_after: Optional[int] = 30):
        self.retry_after = retry_after
        super().__init__(f"{message}; retry shortly")


class MasteryInvariantError(PlannerError):
    """A stored mastery record violates 0 <= current <= peak. Never repaired silently."""


class TopicGraphError(PlannerError):
    """The topic graph has a cycle or a dangling edge. Fatal at startup."""
