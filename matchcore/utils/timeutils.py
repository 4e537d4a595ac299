"""Timezone helpers shared by the services.

All timestamps are stored and compared as timezone-aware UTC.  Some drivers
hand back naive datetimes for ``DateTime(timezone=True)`` columns, so values
read from the store go through ``ensure_utc`` before comparison.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to a naive datetime; convert an aware one to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
