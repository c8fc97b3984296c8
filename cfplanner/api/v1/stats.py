"""
Stats endpoints - per-topic mastery and the dashboard summary.

Unknown handles read as all-zero mastery.
"""

from typing import Dict

from fastapi import APIRouter, Path

from cfplanner.api.deps import Graph, Store
from cfplanner.engines.mastery.aggregate import summarize
from cfplanner.schemas.mastery import MasterySummaryResponse, TopicMastery

router = APIRouter()


@router.get("/stats/{handle}", response_model=Dict[str, TopicMastery])
async def get_stats(graph: Graph, store: Store, handle: str = Path(..., min_length=1, max_length=64)):
    """{topic: {current, peak}} for every roadmap topic, decayed to now."""
    records = await store.get_all(handle, graph.topic_ids())
    return {
        topic: TopicMastery(current=record.current, peak=record.peak)
        for topic, record in records.items()
    }


@router.get("/stats/{handle}/summary", response_model=MasterySummaryResponse)
async def get_summary(graph: Graph, store: Store, handle: str = Path(..., min_length=1, max_length=64)):
    """Effective rating, peak rating and the decay penalty between them."""
    records = await store.get_all(handle, graph.topic_ids())
    summary = summarize(records)
    return MasterySummaryResponse(handle=handle, **summary.model_dump())
