"""
Base mixins for database models.

Provides common functionality:
- TimestampMixin: created_at, updated_at timestamps
- generate_uuid: UUID generation for primary keys
- utc_now / as_utc: timezone-aware UTC helpers
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime


def generate_uuid() -> str:
    """Generate a UUID4 string for use as a primary key default."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    SQLite returns naive datetimes for DateTime(timezone=True) columns;
    every value written by this package is UTC, so naive means UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at timestamp columns.

    Timestamps are assigned by the application rather than the database so
    that updated_at can be guaranteed to advance on every transition.
    """

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        comment="Timestamp when record was last updated"
    )
