"""
Column helpers shared by the ORM models.

- ``JSONDocument``: JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
- ``utcnow`` / ``as_utc``: timezone-aware timestamps. SQLite hands datetimes
  back naive, so comparisons go through ``as_utc``.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

JSONDocument = JSON().with_variant(JSONB(), "postgresql")
"""JSON column type (JSONB on Postgres)."""


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from the database."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 rendering of a stored timestamp, or None."""
    value = as_utc(value)
    return value.isoformat() if value else None
