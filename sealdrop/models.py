"""SQLAlchemy models for SealDrop.

Examples:
    >>> from sealdrop.models import Entry
    >>> entry = Entry(
    ...     id="65f1c0ffee0123456789abcd",
    ...     payload="U2FsdGVkX1...",
    ...     size_bytes=12,
    ...     origin_address="203.0.113.7",
    ...     created_at=datetime.now(timezone.utc),
    ... )

Tests:
    - tests/unit/test_models.py::TestEntry
    - tests/unit/test_models.py::TestEnsureUtc
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

UNKNOWN_ORIGIN = "unknown"


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite.

    Args:
        value: Datetime from the database.

    Returns:
        Aware datetime in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Entry(Base):
    """One stored payload plus its origin and creation time.

    Entries are never updated after insert. ``created_at`` is the only
    timestamp: quota windows and retention both derive from it.

    Attributes:
        id: 24 lowercase hex characters
        payload: Opaque client-encrypted text, stored verbatim
        size_bytes: UTF-8 byte length of payload
        origin_address: Network address used as the quota bucket
        origin_meta: Informational client fields (platform, screen, browser)
        created_at: Insert time, assigned by the store
    """

    __tablename__ = "entries"
    __table_args__ = (
        Index("ix_entries_origin_created", "origin_address", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(24), primary_key=True)

    payload: Mapped[str] = mapped_column(Text, nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)

    origin_address: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=UNKNOWN_ORIGIN,
        index=True,
    )
    origin_meta: Mapped[dict[str, Any] | None] = mapped_column(JSON, default=None)

    # Retention and quota anchor
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    def is_expired(self, now: datetime, retention_seconds: int) -> bool:
        """Check whether the entry is past its retention window.

        Args:
            now: Reference time.
            retention_seconds: Time-to-live in seconds.

        Returns:
            True once ``now - created_at`` exceeds the TTL.
        """
        age = ensure_utc(now) - ensure_utc(self.created_at)
        return age.total_seconds() > retention_seconds

    def __repr__(self) -> str:
        return f"<Entry {self.id} {self.size_bytes}B from {self.origin_address}>"
