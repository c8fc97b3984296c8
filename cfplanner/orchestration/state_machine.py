"""
State machine for submission verification claims.

A claim starts PENDING and ends in exactly one terminal state. Valid
transitions are defined here; anything else raises ValueError.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, Field


class VerificationState(str, Enum):
    PENDING = "pending"
    VERIFYING = "verifying"
    CONFIRMED = "confirmed"
    NOT_YET_SOLVED = "not_yet_solved"
    ALREADY_TRACKED = "already_tracked"
    JUDGE_UNAVAILABLE = "judge_unavailable"
    NOT_FOUND = "not_found"


TERMINAL_STATES: FrozenSet[VerificationState] = frozenset({
    VerificationState.CONFIRMED,
    VerificationState.NOT_YET_SOLVED,
    VerificationState.ALREADY_TRACKED,
    VerificationState.JUDGE_UNAVAILABLE,
    VerificationState.NOT_FOUND,
})

# Valid transitions: from_state -> allowed targets
_TRANSITIONS: Dict[VerificationState, FrozenSet[VerificationState]] = {
    VerificationState.PENDING: frozenset({
        VerificationState.VERIFYING,
        # Idempotency check before the judge is consulted
        VerificationState.ALREADY_TRACKED,
        # Unlinked handle or malformed problem id
        VerificationState.NOT_FOUND,
    }),
    VerificationState.VERIFYING: frozenset({
        VerificationState.CONFIRMED,
        VerificationState.NOT_YET_SOLVED,
        VerificationState.ALREADY_TRACKED,
        VerificationState.JUDGE_UNAVAILABLE,
        VerificationState.NOT_FOUND,
    }),
}


def valid_transitions(from_state: VerificationState) -> List[VerificationState]:
    """Return list of valid target states from given state."""
    return sorted(_TRANSITIONS.get(from_state, frozenset()), key=lambda s: s.value)


def can_transition(from_state: VerificationState, to_state: VerificationState) -> bool:
    return to_state in _TRANSITIONS.get(from_state, frozenset())


class VerificationClaim(BaseModel):
    """One learner's claim to have solved one problem."""

    handle: str
    problem_id: str
    time_spent_minutes: Optional[int] = None
    state: VerificationState = VerificationState.PENDING
    reason: Optional[str] = None
    history: List[Tuple[VerificationState, datetime]] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, to_state: VerificationState, reason: Optional[str] = None) -> "VerificationClaim":
        """Move to `to_state`, recording when. Invalid transitions raise ValueError."""
        if not can_transition(self.state, to_state):
            raise ValueError(
                f"Invalid transition: {self.state.value} -> {to_state.value}"
            )
        self.history.append((self.state, datetime.now(timezone.utc)))
        self.state = to_state
        if reason is not None:
            self.reason = reason
        return self
