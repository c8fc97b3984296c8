"""Engines - mastery, recommendation, verification and the judge client."""
