"""Datetime helpers."""

from datetime import UTC, datetime


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string from a stored document into an aware datetime."""
    if value is None:
        return None
    return ensure_utc_aware(datetime.fromisoformat(value))


def utcnow() -> datetime:
    """Current time in UTC."""
    return datetime.now(UTC)
