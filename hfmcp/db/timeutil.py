"""Timezone-tolerant expiry comparison (SQLite drops tzinfo)."""

from datetime import UTC, datetime


def is_past(expiry: datetime) -> bool:
    """Return True if expiry is strictly before now."""
    now = datetime.now(UTC)
    if expiry.tzinfo is None:
        now = now.replace(tzinfo=None)
    return now > expiry
