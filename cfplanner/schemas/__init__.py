"""Pydantic schemas for API request/response validation."""

from cfplanner.schemas.common import HealthResponse
from cfplanner.schemas.graph import GraphEdge, GraphNode, GraphResponse
from cfplanner.schemas.mastery import MasterySummaryResponse, TopicMastery
from cfplanner.schemas.problem import ProblemOut, RecentSolveOut
from cfplanner.schemas.submission import SubmitRequest, SubmitResponse, SyncResponse

__all__ = [
    "GraphEdge",
    "GraphNode",
    "GraphResponse",
    "HealthResponse",
    "MasterySummaryResponse",
    "ProblemOut",
    "RecentSolveOut",
    "SubmitRequest",
    "SubmitResponse",
    "SyncResponse",
    "TopicMastery",
]
