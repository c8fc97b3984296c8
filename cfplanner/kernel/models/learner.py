"""
Learner model - a linked judge handle.
"""

from datetime import datetime

from sqlalchemy import String, func
from sqlalchemy.orm import Mapped, mapped_column

from cfplanner.kernel.models.base import HANDLE_MAX_LENGTH, Base, UtcDateTime


class Learner(Base):
    """A judge handle that has been linked through sync."""

    __tablename__ = "learners"

    handle: Mapped[str] = mapped_column(String(HANDLE_MAX_LENGTH), primary_key=True)
    linked_at: Mapped[datetime] = mapped_column(
        UtcDateTime,
        server_default=func.now(),
        nullable=False,
    )
