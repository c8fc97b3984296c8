"""
Kernel Data Models

SQLAlchemy models for learners, mastery records and tracked problems.
"""

from cfplanner.kernel.models.base import (
    HANDLE_MAX_LENGTH,
    Base,
    HandleMixin,
    TimestampMixin,
    UtcDateTime,
    as_utc,
)
from cfplanner.kernel.models.learner import Learner
from cfplanner.kernel.models.mastery import MasteryRecordRow, TrackedProblem

__all__ = [
    "HANDLE_MAX_LENGTH",
    "Base",
    "HandleMixin",
    "TimestampMixin",
    "UtcDateTime",
    "as_utc",
    "Learner",
    "MasteryRecordRow",
    "TrackedProblem",
]
