"""
Recent activity endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Path, Query

from cfplanner.api.deps import Activity
from cfplanner.engines.judge.activity_feed import ActivityStatus
from cfplanner.schemas.problem import RecentSolveOut

router = APIRouter()


@router.get("/recent/{status}/{handle}", response_model=List[RecentSolveOut])
async def recent_activity(
    status: ActivityStatus,
    activity: Activity,
    handle: str = Path(..., min_length=1, max_length=64),
    limit: Optional[int] = Query(None, ge=1, le=100),
):
    """Latest solved or unsolved problems, newest first."""
    items = await activity.recent(handle, status, limit)
    return [RecentSolveOut.from_recent(item) for item in items]
