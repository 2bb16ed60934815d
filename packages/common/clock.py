"""Instant helpers shared by the stores.

Instants are persisted as UTC ISO-8601 strings with millisecond precision so
that string comparison in SQL matches chronological order.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime, tzinfo

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_iso(value: datetime) -> str:
    """Serialize an aware datetime as a sortable UTC string."""
    if value.tzinfo is None:
        raise ValueError("naive datetimes are not stored")
    return value.astimezone(UTC).isoformat(timespec="milliseconds")


def parse_iso(value: str | None) -> datetime | None:
    """Parse a stored instant; naive values are read as UTC."""
    if value is None or value == "":
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def local_date(value: datetime, tz: tzinfo) -> date:
    """Calendar date of an instant in the study timezone."""
    return value.astimezone(tz).date()


def truncate_ms(value: datetime) -> datetime:
    """Drop sub-millisecond precision so a value survives a storage round trip."""
    return value.replace(microsecond=value.microsecond // 1000 * 1000)
