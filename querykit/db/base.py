"""SQLAlchemy Declarative Base — shared base class and column mixins for mapped tables.

Invariants:
    - Column names match the Where defaults (id, flags, created_at, updated_at) and the
      default soft-delete column (deleted_at)
    - Timestamps are timezone-aware UTC

Design Decisions:
    - Separate file for Base: avoids circular imports between models
    - Mixins over a fat base class: tables opt into flags / timestamps / soft delete
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all mapped tables."""
    pass


class FlagsMixin:
    flags: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )


class SoftDeleteMixin:
    """Rows with deleted_at set are hidden from selects unless asked for."""
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
