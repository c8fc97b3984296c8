"""
Decay - current strength as a function of peak and time since last solve.

Pure and deterministic. Evaluated on every read, never stored.

Curve: no decay during a grace period, then exponential with a half-life:

    current = peak * 0.5 ** (max(0, elapsed_days - grace_days) / half_life_days)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class DecayPolicy:
    """Tunable decay curve."""

    grace_days: float = 14.0
    half_life_days: float = 120.0

    def __post_init__(self):
        if self.grace_days < 0:
            raise ValueError("grace_days must be >= 0")
        if self.half_life_days <= 0:
            raise ValueError("half_life_days must be > 0")

    def factor(self, elapsed_days: float) -> float:
        """Retention in [0, 1]; 1 at elapsed 0, non-increasing after."""
        over = max(0.0, elapsed_days - self.grace_days)
        return 0.5 ** (over / self.half_life_days)


DEFAULT_POLICY = DecayPolicy()


def elapsed_days(last_activity_at: Optional[datetime], now: datetime) -> float:
    """Days since last activity; None and future timestamps count as 'just now'."""
    if last_activity_at is None:
        return 0.0
    return max(0.0, (now - last_activity_at).total_seconds() / SECONDS_PER_DAY)


def current_strength(
    peak: float,
    last_activity_at: Optional[datetime],
    now: datetime,
    policy: DecayPolicy = DEFAULT_POLICY,
) -> float:
    """Decayed strength for a topic. Always within [0, peak]."""
    if peak <= 0:
        return 0.0
    value = peak * policy.factor(elapsed_days(last_activity_at, now))
    return min(peak, max(0.0, value))
