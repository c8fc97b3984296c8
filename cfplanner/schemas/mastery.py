"""
Mastery schemas - per-topic stats and the dashboard summary.
"""

from pydantic import BaseModel

from cfplanner.engines.mastery.aggregate import RatingSummary


class TopicMastery(BaseModel):
    """Decayed current strength and all-time peak in one topic."""

    current: float
    peak: float


class MasterySummaryResponse(RatingSummary):
    handle: str
