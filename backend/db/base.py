"""Declarative base and shared columns for the persistence tables."""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class SoftDeleteMixin:
    """Rows are flagged instead of removed.

    Used for definitions: suspended instances may still reference a
    definition after it was withdrawn from event routing.
    """

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    def soft_delete(self) -> None:
        self.is_deleted = True
        self.deleted_at = utcnow()

    def restore(self) -> None:
        self.is_deleted = False
        self.deleted_at = None


class TimestampedModel(Base):
    """Abstract table with a hex UUID key and creation/update times.

    Timestamps are set client-side with microsecond precision; store
    queries order by created_at, and SQLite's CURRENT_TIMESTAMP only
    resolves to the second.
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(primary_key=True, default=lambda: uuid4().hex)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class BaseModel(SoftDeleteMixin, TimestampedModel):
    """Abstract table with timestamps and soft delete."""

    __abstract__ = True
