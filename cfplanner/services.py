"""
Service container - the engines wired together once per process.

Built in the application lifespan and stored on `app.state.services`.
"""

import random
from dataclasses import dataclass
from typing import Optional

from cfplanner.config import Settings
from cfplanner.engines.judge.activity_feed import ActivityFeed
from cfplanner.engines.judge.types import JudgeClient
from cfplanner.engines.mastery.store import MasteryStore
from cfplanner.engines.recommendation.recommender import RecommendationEngine
from cfplanner.engines.verification.verifier import SubmissionVerifier
from cfplanner.pedagogy.topic_graph import TopicGraph


@dataclass
class Services:
    settings: Settings
    graph: TopicGraph
    store: MasteryStore
    judge: JudgeClient
    verifier: SubmissionVerifier
    recommender: RecommendationEngine
    activity: ActivityFeed


def build_services(
    settings: Settings,
    graph: TopicGraph,
    store: MasteryStore,
    judge: JudgeClient,
    rng: Optional[random.Random] = None,
) -> Services:
    verifier = SubmissionVerifier(graph, store, judge)
    recommender = RecommendationEngine.from_settings(
        graph,
        store,
        judge,
        settings,
        in_flight=verifier.in_flight,
        rng=rng,
    )
    return Services(
        settings=settings,
        graph=graph,
        store=store,
        judge=judge,
        verifier=verifier,
        recommender=recommender,
        activity=ActivityFeed(judge, default_limit=settings.recent_activity_limit),
    )
