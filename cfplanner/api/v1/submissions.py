"""
Submission endpoints - verify a claimed solve, sync a handle's history.
"""

from typing import Dict

from fastapi import APIRouter, HTTPException, Path, status

from cfplanner.api.deps import Verifier
from cfplanner.orchestration.state_machine import VerificationState
from cfplanner.schemas.submission import SubmitRequest, SubmitResponse, SyncResponse

router = APIRouter()

_FAILURE_STATUS: Dict[VerificationState, int] = {
    VerificationState.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    VerificationState.ALREADY_TRACKED: status.HTTP_409_CONFLICT,
    VerificationState.NOT_YET_SOLVED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    VerificationState.JUDGE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.post("/submit/{handle}", response_model=SubmitResponse)
async def submit_solve(
    body: SubmitRequest,
    verifier: Verifier,
    handle: str = Path(..., min_length=1, max_length=64),
):
    """
    Confirm a solve with the judge and credit mastery.

    404 unknown handle or problem, 409 already credited, 422 no accepted
    verdict yet, 503 judge unavailable (with Retry-After).
    """
    outcome = await verifier.verify(handle, body.problem_id, body.time_spent_minutes)
    if not outcome.confirmed:
        headers = None
        if outcome.state == VerificationState.JUDGE_UNAVAILABLE and outcome.retry_after:
            headers = {"Retry-After": str(outcome.retry_after)}
        raise HTTPException(
            status_code=_FAILURE_STATUS[outcome.state],
            detail=outcome.reason or outcome.state.value,
            headers=headers,
        )
    return SubmitResponse(
        status=outcome.state.value,
        problem_id=outcome.problem_id,
        credited=outcome.credited,
    )


@router.post("/sync/{handle}", response_model=SyncResponse)
async def sync_handle(verifier: Verifier, handle: str = Path(..., min_length=1, max_length=64)):
    """Link a handle and import its accepted history."""
    result = await verifier.sync(handle)
    return SyncResponse(handle=result.handle, imported=result.imported, newly_linked=result.newly_linked)
