"""Orchestration layer - verification claim state machine."""

from cfplanner.orchestration.state_machine import (
    VerificationClaim,
    VerificationState,
    can_transition,
    valid_transitions,
)

__all__ = [
    "VerificationClaim",
    "VerificationState",
    "can_transition",
    "valid_transitions",
]
