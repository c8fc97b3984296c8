"""
Aggregate rating - one number out of many per-topic strengths.

Power-weighted mean sum(v^4) / sum(v^3) over the touched topics, so the
strongest topics dominate and untouched ones (value <= 0) are ignored.
"""

import math
from typing import TYPE_CHECKING, Iterable, Mapping

from pydantic import BaseModel

if TYPE_CHECKING:
    from cfplanner.engines.mastery.store import MasteryRecord


class RatingSummary(BaseModel):
    """Dashboard headline numbers."""

    effective_rating: int
    peak_rating: int
    decay_penalty: int


def aggregate_rating(values: Iterable[float]) -> int:
    """Power-weighted mean of the positive values, rounded half up; 0 if none."""
    num = 0.0
    den = 0.0
    for v in values:
        if v <= 0:
            continue
        v3 = v ** 3
        num += v3 * v
        den += v3
    if den == 0:
        return 0
    return int(math.floor(num / den + 0.5))


def summarize(mastery: Mapping[str, "MasteryRecord"]) -> RatingSummary:
    """
    Build the dashboard summary from {topic: record}.

    Computed twice, once over current and once over peak; the gap is the
    decay penalty.
    """
    records = list(mastery.values())
    effective = aggregate_rating(r.current for r in records)
    peak = aggregate_rating(r.peak for r in records)
    return RatingSummary(
        effective_rating=effective,
        peak_rating=peak,
        decay_penalty=max(0, peak - effective),
    )
