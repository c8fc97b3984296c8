"""
Roadmap graph schemas.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class GraphNode(BaseModel):
    id: int
    slug: str
    display_name: str


class GraphEdge(BaseModel):
    """Prerequisite -> dependent. Serialized as {"from", "to"}."""

    model_config = ConfigDict(populate_by_name=True)

    from_: int = Field(alias="from")
    to: int


class GraphResponse(BaseModel):
    nodes: List[GraphNode]
    edges: List[GraphEdge]
