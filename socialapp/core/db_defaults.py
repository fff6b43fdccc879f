"""Database-aware helpers for SQL column defaults."""

from datetime import datetime, timezone

from sqlalchemy.sql import text


def timestamp_default():
    """Return a server-side timestamp default portable across dialects."""
    return text("CURRENT_TIMESTAMP")


def utcnow() -> datetime:
    """Timezone-aware "now" used for Python-side defaults and comparisons."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = ["timestamp_default", "utcnow", "as_utc"]
