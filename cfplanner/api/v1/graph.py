"""
Roadmap endpoint - the topic DAG for the graph view.
"""

from fastapi import APIRouter

from cfplanner.api.deps import Graph
from cfplanner.schemas.graph import GraphEdge, GraphNode, GraphResponse

router = APIRouter()


@router.get("/graph", response_model=GraphResponse)
async def get_graph(graph: Graph):
    """Numbered topics in prerequisite order and their prerequisite edges."""
    nodes, edges = graph.as_graph()
    return GraphResponse(
        nodes=[GraphNode(**n) for n in nodes],
        edges=[GraphEdge(**e) for e in edges],
    )
