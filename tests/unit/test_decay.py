"""Unit tests for decay and the aggregate rating."""

import math

import pytest

from cfplanner.engines.mastery.aggregate import aggregate_rating, summarize
from cfplanner.engines.mastery.decay import DecayPolicy, current_strength, elapsed_days
from cfplanner.engines.mastery.store import MasteryRecord
from tests.fakes import NOW, days


class TestDecay:
    def test_equals_peak_at_elapsed_zero(self):
        assert current_strength(1200.0, NOW, NOW) == 1200.0

    def test_none_last_activity_is_just_now(self):
        assert current_strength(1200.0, None, NOW) == 1200.0

    def test_no_decay_during_grace_period(self):
        assert current_strength(1000.0, NOW - days(14), NOW) == 1000.0

    def test_half_life_after_grace(self):
        assert current_strength(1000.0, NOW - days(134), NOW) == pytest.approx(500.0)
        assert current_strength(1000.0, NOW - days(254), NOW) == pytest.approx(250.0)

    def test_monotone_non_increasing_and_bounded(self):
        values = [current_strength(1500.0, NOW - days(d), NOW) for d in range(0, 2000, 7)]
        assert all(0.0 <= v <= 1500.0 for v in values)
        assert all(a >= b for a, b in zip(values, values[1:]))

    def test_approaches_zero(self):
        assert current_strength(1500.0, NOW - days(10000), NOW) < 1.0

    def test_future_activity_does_not_exceed_peak(self):
        assert current_strength(900.0, NOW + days(3), NOW) == 900.0
        assert elapsed_days(NOW + days(3), NOW) == 0.0

    def test_zero_peak(self):
        assert current_strength(0.0, NOW - days(400), NOW) == 0.0

    def test_custom_policy(self):
        policy = DecayPolicy(grace_days=0, half_life_days=10)
        assert current_strength(800.0, NOW - days(10), NOW, policy) == pytest.approx(400.0)

    @pytest.mark.parametrize("kwargs", [{"grace_days": -1}, {"half_life_days": 0}])
    def test_policy_validation(self, kwargs):
        with pytest.raises(ValueError):
            DecayPolicy(**kwargs)


class TestAggregate:
    def test_power_weighted_mean_ignores_zero(self):
        expected = math.floor((1500 ** 4 + 1800 ** 4) / (1500 ** 3 + 1800 ** 3) + 0.5)
        result = aggregate_rating([0, 1500, 1800])
        assert result == expected == 1690
        assert 1500 < result < 1800
        assert result - 1500 > 1800 - result

    def test_all_zero(self):
        assert aggregate_rating([0, 0, 0]) == 0
        assert aggregate_rating([]) == 0

    def test_negative_values_ignored(self):
        assert aggregate_rating([-100, 1000]) == 1000

    def test_rounds_half_up(self):
        assert aggregate_rating([2.5]) == 3

    def test_summary(self):
        records = {
            "graphs": MasteryRecord(handle="h", topic="graphs", peak=1800.0, current=1500.0),
            "greedy": MasteryRecord(handle="h", topic="greedy", peak=0.0, current=0.0),
        }
        summary = summarize(records)
        assert summary.effective_rating == 1500
        assert summary.peak_rating == 1800
        assert summary.decay_penalty == 300
