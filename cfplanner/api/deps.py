"""
FastAPI dependencies - engines from the application state.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from cfplanner.engines.judge.activity_feed import ActivityFeed
from cfplanner.engines.mastery.store import MasteryStore
from cfplanner.engines.recommendation.recommender import RecommendationEngine
from cfplanner.engines.verification.verifier import SubmissionVerifier
from cfplanner.pedagogy.topic_graph import TopicGraph
from cfplanner.services import Services


def get_services(request: Request) -> Services:
    """Services built during startup. 503 while the app is not ready."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not ready",
        )
    return services


ServicesDep = Annotated[Services, Depends(get_services)]


def get_graph(services: ServicesDep) -> TopicGraph:
    return services.graph


def get_store(services: ServicesDep) -> MasteryStore:
    return services.store


def get_recommender(services: ServicesDep) -> RecommendationEngine:
    return services.recommender


def get_verifier(services: ServicesDep) -> SubmissionVerifier:
    return services.verifier


def get_activity_feed(services: ServicesDep) -> ActivityFeed:
    return services.activity


Graph = Annotated[TopicGraph, Depends(get_graph)]
Store = Annotated[MasteryStore, Depends(get_store)]
Recommender = Annotated[RecommendationEngine, Depends(get_recommender)]
Verifier = Annotated[SubmissionVerifier, Depends(get_verifier)]
Activity = Annotated[ActivityFeed, Depends(get_activity_feed)]
