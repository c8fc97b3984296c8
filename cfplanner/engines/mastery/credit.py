"""
Credit policy - how much a verified solve moves each topic.

A solve of a problem rated R is worth a credit

    credit = R * attempt_modifier * speed_modifier * 0.75 ** distance

in every topic the problem is tagged with (distance 0) and in each of their
prerequisites (distance = hops up the roadmap). The mastery delta closes part
of the gap between that credit and the learner's current strength:

    delta = max(0, credit - current) * learning_rate
"""

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

from cfplanner.pedagogy.topic_graph import TopicGraph


@dataclass(frozen=True)
class CreditPolicy:
    attempt_decay: float = 0.1
    speed_reference_minutes: float = 45.0
    speed_smoothing_minutes: float = 10.0
    speed_floor: float = 0.85
    ancestor_discount: float = 0.75
    learning_rate: float = 0.5

    def base_rating(self, rating: int, attempts: int) -> float:
        """Rating discounted for wrong attempts before the accepted one; halves at most."""
        if attempts <= 1:
            return float(rating)
        modifier = 0.5 + 0.5 * math.exp(-self.attempt_decay * (attempts - 1))
        return rating * modifier

    def speed_modifier(self, time_spent_minutes: Optional[int]) -> float:
        """1.0 when unknown; above 1 when faster than the reference time."""
        if not time_spent_minutes or time_spent_minutes <= 0:
            return 1.0
        factor = (self.speed_reference_minutes + self.speed_smoothing_minutes) / (
            time_spent_minutes + self.speed_smoothing_minutes
        )
        return self.speed_floor + (1 - self.speed_floor) * factor

    def topic_multipliers(self, graph: TopicGraph, problem_topics: Sequence[str]) -> Dict[str, float]:
        """{topic: discount} for the problem's topics and all their prerequisites."""
        nearest: Dict[str, int] = {}
        for topic in problem_topics:
            if topic not in graph:
                continue
            for ancestor, dist in graph.ancestry(topic).items():
                if ancestor not in nearest or dist < nearest[ancestor]:
                    nearest[ancestor] = dist
        return {topic: self.ancestor_discount ** dist for topic, dist in nearest.items()}

    def credits(
        self,
        graph: TopicGraph,
        rating: int,
        attempts: int,
        problem_topics: Sequence[str],
        time_spent_minutes: Optional[int] = None,
    ) -> Dict[str, float]:
        base = self.base_rating(rating, attempts) * self.speed_modifier(time_spent_minutes)
        return {
            topic: base * multiplier
            for topic, multiplier in self.topic_multipliers(graph, problem_topics).items()
        }

    def rating_deltas(
        self,
        credits: Mapping[str, float],
        current: Mapping[str, float],
    ) -> Dict[str, float]:
        """Per-topic non-negative deltas for MasteryStore.record_solve."""
        return {
            topic: max(0.0, credit - current.get(topic, 0.0)) * self.learning_rate
            for topic, credit in credits.items()
        }


DEFAULT_CREDIT_POLICY = CreditPolicy()
