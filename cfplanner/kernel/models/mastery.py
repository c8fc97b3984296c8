"""
Mastery models - per-topic strength and the tracked-problem ledger.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Float, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from cfplanner.kernel.models.base import Base, HandleMixin, TimestampMixin, UtcDateTime


class MasteryRecordRow(Base, HandleMixin, TimestampMixin):
    """
    Per-learner, per-topic mastery.

    `current` is the strength at `last_activity_at`; the decayed value is
    computed on read and never written back.
    """

    __tablename__ = "mastery_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_slug: Mapped[str] = mapped_column(String(64), nullable=False)

    peak: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    current: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    __table_args__ = (UniqueConstraint("handle", "topic_slug", name="uq_mastery_records_handle_topic"),)


class TrackedProblem(Base, HandleMixin):
    """A problem credited to a learner. One row per (handle, problem_id)."""

    __tablename__ = "tracked_problems"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    problem_id: Mapped[str] = mapped_column(String(32), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    topics: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    solved_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("handle", "problem_id", name="uq_tracked_problems_handle_problem"),
        Index("ix_tracked_problems_handle_solved_at", "handle", "solved_at"),
    )
