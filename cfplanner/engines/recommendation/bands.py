"""
Difficulty bands - named rating offsets on top of current mastery.
"""

from enum import Enum
from typing import Dict, Mapping

from cfplanner.config import Settings


class DifficultyBand(str, Enum):
    WARMUP = "warmup"
    GROWTH = "growth"
    CHALLENGE = "challenge"


DEFAULT_OFFSETS: Dict[DifficultyBand, int] = {
    DifficultyBand.WARMUP: -50,
    DifficultyBand.GROWTH: 25,
    DifficultyBand.CHALLENGE: 100,
}


class BandTable:
    """Band <-> offset lookup. Offsets must be distinct so either side identifies a band."""

    def __init__(self, offsets: Mapping[DifficultyBand, int] = DEFAULT_OFFSETS):
        missing = [b.value for b in DifficultyBand if b not in offsets]
        if missing:
            raise ValueError(f"missing offsets for bands: {', '.join(missing)}")
        if len(set(offsets.values())) != len(offsets):
            raise ValueError("band offsets must be distinct")
        self._offsets = dict(offsets)

    @classmethod
    def from_settings(cls, settings: Settings) -> "BandTable":
        return cls({
            DifficultyBand.WARMUP: settings.band_warmup_offset,
            DifficultyBand.GROWTH: settings.band_growth_offset,
            DifficultyBand.CHALLENGE: settings.band_challenge_offset,
        })

    def offset(self, band: DifficultyBand) -> int:
        return self._offsets[band]

    def from_offset(self, offset: int) -> DifficultyBand:
        """Legacy `inc=` values; anything that is not a configured band raises ValueError."""
        for band, value in self._offsets.items():
            if value == offset:
                return band
        allowed = ", ".join(str(v) for v in sorted(self._offsets.values()))
        raise ValueError(f"unknown difficulty offset {offset}; expected one of {allowed}")
