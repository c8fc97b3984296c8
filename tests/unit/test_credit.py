"""Unit tests for the credit policy."""

import math

import pytest

from cfplanner.engines.mastery.credit import CreditPolicy

policy = CreditPolicy()


class TestBaseRating:
    def test_first_try_is_full_rating(self):
        assert policy.base_rating(1500, 1) == 1500
        assert policy.base_rating(1500, 0) == 1500

    def test_wrong_attempts_discount(self):
        assert policy.base_rating(1500, 2) == pytest.approx(1500 * (0.5 + 0.5 * math.exp(-0.1)))

    def test_discount_is_at_most_half(self):
        assert 750 < policy.base_rating(1500, 200) < 760


class TestSpeedModifier:
    @pytest.mark.parametrize("minutes", [None, 0, -5])
    def test_unknown_time_is_neutral(self, minutes):
        assert policy.speed_modifier(minutes) == 1.0

    def test_reference_time_is_neutral(self):
        assert policy.speed_modifier(45) == pytest.approx(1.0)

    def test_slow_solve(self):
        assert policy.speed_modifier(100) == pytest.approx(0.925)

    def test_fast_solve_uncapped(self):
        assert policy.speed_modifier(10) == pytest.approx(1.2625)
        assert policy.speed_modifier(1) == pytest.approx(1.6)


class TestPropagation:
    def test_prerequisites_discounted_by_distance(self, graph):
        assert policy.topic_multipliers(graph, ["graphs"]) == {
            "graphs": 1.0,
            "data structures": 0.75,
            "implementation": pytest.approx(0.5625),
        }

    def test_nearest_distance_wins(self, graph):
        multipliers = policy.topic_multipliers(graph, ["trees", "dynamic programming", "tree dp"])
        assert multipliers["trees"] == 1.0
        assert multipliers["dynamic programming"] == 1.0
        assert multipliers["graphs"] == 0.75
        assert multipliers["implementation"] == pytest.approx(0.5625)

    def test_unknown_topics_ignored(self, graph):
        assert policy.topic_multipliers(graph, ["not a topic"]) == {}

    def test_credits(self, graph):
        credits = policy.credits(graph, 1000, 1, ["graphs"])
        assert credits == {
            "graphs": 1000.0,
            "data structures": 750.0,
            "implementation": 562.5,
        }


class TestDeltas:
    def test_half_the_gap(self):
        assert policy.rating_deltas({"graphs": 1000.0}, {"graphs": 400.0}) == {"graphs": 300.0}

    def test_never_negative(self):
        assert policy.rating_deltas({"graphs": 800.0}, {"graphs": 1200.0}) == {"graphs": 0.0}

    def test_missing_current_is_zero(self):
        assert policy.rating_deltas({"math": 900.0}, {}) == {"math": 450.0}
