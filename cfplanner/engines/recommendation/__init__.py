"""Problem recommendation by difficulty band."""

from cfplanner.engines.recommendation.bands import BandTable, DifficultyBand
from cfplanner.engines.recommendation.recommender import RecommendationEngine

__all__ = ["BandTable", "DifficultyBand", "RecommendationEngine"]
