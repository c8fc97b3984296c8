"""Mastery: decay, aggregate rating, credit policy and the store."""

from cfplanner.engines.mastery.aggregate import RatingSummary, aggregate_rating, summarize
from cfplanner.engines.mastery.credit import DEFAULT_CREDIT_POLICY, CreditPolicy
from cfplanner.engines.mastery.decay import DEFAULT_POLICY, DecayPolicy, current_strength
from cfplanner.engines.mastery.store import (
    InMemoryMasteryStore,
    MasteryRecord,
    MasteryStore,
    SqlMasteryStore,
    TrackedSolve,
)

__all__ = [
    "CreditPolicy",
    "DEFAULT_CREDIT_POLICY",
    "DEFAULT_POLICY",
    "DecayPolicy",
    "InMemoryMasteryStore",
    "MasteryRecord",
    "MasteryStore",
    "RatingSummary",
    "SqlMasteryStore",
    "TrackedSolve",
    "aggregate_rating",
    "current_strength",
    "summarize",
]
