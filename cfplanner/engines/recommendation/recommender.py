"""
Recommendation engine - unsolved problems near current mastery plus an offset.

recommend():
  1. current strength in the topic (store + decay)
  2. target = clamp(current + band offset, min_rating, max_rating)
  3. rated catalog problems in the topic within +/- window of the target
  4. drop problems solved on the judge, tracked in the store, or mid-verification
  5. cross-topic readiness: a problem whose other topics are well above the
     learner's strength there is deferred; the allowed margin widens until the
     result is full
  6. order by (|rating - target|, problem id), bounded by limit

recommend_daily() picks one problem from a topic chosen by decay.
"""

import random
from datetime import datetime
from typing import AbstractSet, Callable, Dict, List, Optional, Sequence, Tuple

from cfplanner.config import Settings
from cfplanner.engines.judge.types import JudgeClient, Problem, parse_problem_id
from cfplanner.engines.mastery.store import MasteryStore
from cfplanner.engines.recommendation.bands import BandTable, DifficultyBand
from cfplanner.logging_config import get_logger
from cfplanner.pedagogy.topic_graph import TopicGraph

logger = get_logger(__name__)

READINESS_MARGINS: Tuple[int, ...] = (50, 100, 150, 200, 300, 500, 1000)

FALLBACK_TOPIC = "implementation"

# Daily topic choice: below 50 most decayed, below 80 strongest, else shuffled
_DECAYED_ROLL = 50
_STRONGEST_ROLL = 80
_DAILY_CANDIDATES = 3


def problem_order(problem: Problem, target: int) -> Tuple[int, int, str]:
    contest, index = parse_problem_id(problem.id)
    return abs(problem.rating - target), contest, index


class RecommendationEngine:
    def __init__(
        self,
        graph: TopicGraph,
        store: MasteryStore,
        judge: JudgeClient,
        bands: Optional[BandTable] = None,
        in_flight: Optional[Callable[[str], AbstractSet[str]]] = None,
        min_rating: int = 800,
        max_rating: int = 3500,
        window: int = 200,
        default_limit: int = 5,
        max_limit: int = 20,
        daily_offset: int = 100,
        margins: Sequence[int] = READINESS_MARGINS,
        rng: Optional[random.Random] = None,
    ):
        self.graph = graph
        self.store = store
        self.judge = judge
        self.bands = bands or BandTable()
        self._in_flight = in_flight
        self.min_rating = min_rating
        self.max_rating = max_rating
        self.window = window
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.daily_offset = daily_offset
        self.margins = tuple(margins)
        self.rng = rng or random.Random()

    @classmethod
    def from_settings(
        cls,
        graph: TopicGraph,
        store: MasteryStore,
        judge: JudgeClient,
        settings: Settings,
        in_flight: Optional[Callable[[str], AbstractSet[str]]] = None,
        rng: Optional[random.Random] = None,
    ) -> "RecommendationEngine":
        return cls(
            graph,
            store,
            judge,
            bands=BandTable.from_settings(settings),
            in_flight=in_flight,
            min_rating=settings.min_problem_rating,
            max_rating=settings.max_problem_rating,
            window=settings.recommend_rating_window,
            default_limit=settings.recommend_default_limit,
            max_limit=settings.recommend_max_limit,
            daily_offset=settings.daily_offset,
            rng=rng,
        )

    def clamp_rating(self, rating: float) -> int:
        return int(min(self.max_rating, max(self.min_rating, rating)))

    def bound_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.default_limit
        return max(0, min(limit, self.max_limit))

    async def recommend(
        self,
        handle: str,
        topic: str,
        band: DifficultyBand,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[Problem]:
        """Problems for `topic` at the given band. An empty list is a valid answer."""
        return await self.recommend_at_offset(handle, topic, self.bands.offset(band), limit, now)

    async def recommend_at_offset(
        self,
        handle: str,
        topic: str,
        offset: int,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[Problem]:
        self.graph.get(topic)
        limit = self.bound_limit(limit)
        if limit == 0:
            return []

        strengths = {
            slug: record.current
            for slug, record in (await self.store.get_all(handle, self.graph.topic_ids(), now)).items()
        }
        target = self.clamp_rating(strengths.get(topic, 0.0) + offset)
        low = max(self.min_rating, target - self.window)
        high = target + self.window

        excluded = await self._excluded_ids(handle)
        candidates = sorted(
            (
                p for p in await self.judge.list_problems_by_tag(topic)
                if p.is_rated and low <= p.rating <= high and p.id not in excluded
            ),
            key=lambda p: problem_order(p, target),
        )

        chosen = self._ready(candidates, topic, strengths, limit)
        chosen.sort(key=lambda p: problem_order(p, target))
        logger.debug(
            "Recommendations computed",
            extra={
                "handle": handle,
                "topic": topic,
                "target": target,
                "candidates": len(candidates),
                "returned": len(chosen),
            },
        )
        return chosen

    async def _excluded_ids(self, handle: str) -> AbstractSet[str]:
        excluded = set(await self.judge.solved_problem_ids(handle))
        excluded |= await self.store.tracked_problem_ids(handle)
        if self._in_flight is not None:
            excluded |= set(self._in_flight(handle))
        return excluded

    def _ready(
        self,
        candidates: List[Problem],
        topic: str,
        strengths: Dict[str, float],
        limit: int,
    ) -> List[Problem]:
        """Fill up to `limit`, admitting harder cross-topic problems only as the margin widens."""
        chosen: List[Problem] = []
        added = set()
        for margin in self.margins:
            if len(chosen) >= limit:
                break
            for problem in candidates:
                if len(chosen) >= limit:
                    break
                if problem.id in added:
                    continue
                if all(
                    problem.rating <= max(int(strengths.get(other, 0.0)), self.min_rating) + margin
                    for other in problem.tags
                    if other != topic
                ):
                    chosen.append(problem)
                    added.add(problem.id)
        return chosen

    async def recommend_daily(self, handle: str, now: Optional[datetime] = None) -> Optional[Problem]:
        """
        One problem for today, or None when nothing fits.

        Topics with any strength are ordered by decay (most decayed first, half
        the time), by strength (strongest first, 30%), or at random; one of the
        first three is tried after another.
        """
        records = await self.store.get_all(handle, self.graph.topic_ids(), now)
        active = [
            (slug, int(r.current), int(r.peak - r.current))
            for slug, r in records.items()
            if int(r.current) > 0
        ]

        if active:
            roll = self.rng.randrange(100)
            if roll < _DECAYED_ROLL:
                active.sort(key=lambda t: (-t[2], t[1]))
            elif roll < _STRONGEST_ROLL:
                active.sort(key=lambda t: (t[2], -t[1]))
            else:
                self.rng.shuffle(active)
            picks = active[:_DAILY_CANDIDATES]
            self.rng.shuffle(picks)
            for slug, _, _ in picks:
                found = await self.recommend_at_offset(handle, slug, self.daily_offset, 1, now)
                if found:
                    return found[0]

        if FALLBACK_TOPIC in self.graph:
            found = await self.recommend_at_offset(handle, FALLBACK_TOPIC, self.daily_offset, 1, now)
            if found:
                return found[0]
        return None
