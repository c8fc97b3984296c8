"""
Declarative base, column types and mixins shared by the planner tables.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Codeforces handles are 3-24 characters; leave room for other judges
HANDLE_MAX_LENGTH = 64


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UtcDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetimes on every backend.

    SQLite drops the offset on write and hands back naive values; PostgreSQL
    returns them in the session time zone. Both come back as aware UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        return as_utc(value)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        return as_utc(value)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class HandleMixin:
    """Rows keyed by a judge handle. No foreign key: mastery exists before linking."""

    handle: Mapped[str] = mapped_column(String(HANDLE_MAX_LENGTH), nullable=False, index=True)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        UtcDateTime,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UtcDateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
