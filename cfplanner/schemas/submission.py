"""
Submission schemas - solve claims and account sync.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class SubmitRequest(BaseModel):
    """A learner's claim to have solved a problem."""

    problem_id: str = Field(..., min_length=2, max_length=32)
    time_spent_minutes: Optional[int] = Field(None, ge=0, le=24 * 60)


class SubmitResponse(BaseModel):
    status: str
    problem_id: str
    credited: Dict[str, float] = Field(default_factory=dict)


class SyncResponse(BaseModel):
    status: str = "synced"
    handle: str
    imported: int
    newly_linked: bool = False
