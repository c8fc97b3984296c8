"""
Problem endpoints - band recommendations and the daily problem.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Path, Query, status

from cfplanner.api.deps import Recommender
from cfplanner.engines.recommendation.bands import DifficultyBand
from cfplanner.schemas.problem import ProblemOut

router = APIRouter()


@router.get("/problems/{topic}", response_model=List[ProblemOut])
async def recommend_problems(
    recommender: Recommender,
    topic: str = Path(..., min_length=1, max_length=64),
    handle: str = Query(..., min_length=1, max_length=64),
    band: Optional[DifficultyBand] = Query(None),
    inc: Optional[int] = Query(None, description="Legacy rating offset; must match a band"),
    limit: Optional[int] = Query(None, ge=1),
):
    """
    Unsolved problems in `topic` near the learner's strength plus the band offset.

    Pass `band` or the older `inc`; growth is used when neither is given.
    """
    if band is None and inc is not None:
        try:
            band = recommender.bands.from_offset(inc)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    problems = await recommender.recommend(handle, topic, band or DifficultyBand.GROWTH, limit)
    return [ProblemOut.from_problem(p) for p in problems]


@router.get("/daily/{handle}", response_model=ProblemOut)
async def daily_problem(recommender: Recommender, handle: str = Path(..., min_length=1, max_length=64)):
    """One problem for today, weighted toward decaying topics."""
    problem = await recommender.recommend_daily(handle)
    if problem is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="no daily problem found",
        )
    return ProblemOut.from_problem(problem)
