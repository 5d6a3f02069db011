"""Timestamp helpers. All stored timestamps are naive UTC."""
from datetime import datetime, timedelta, timezone
from typing import Optional

from mecasync.exceptions import ValidationError

# Smallest step SQLite and most backends can represent
TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    """Current UTC time without tzinfo, matching the stored column format."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def next_timestamp(previous: Optional[datetime]) -> datetime:
    """
    Return a timestamp strictly later than `previous`.

    The wall clock can repeat a value (coarse resolution) or step backwards,
    so fall back to `previous + 1µs` when it does.
    """
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + TICK
    return now


def parse_timestamp(value: Optional[str], field: str = "lastSync") -> Optional[datetime]:
    """
    Parse an ISO-8601 string into naive UTC.

    Args:
        value: ISO-8601 timestamp, optionally with offset or trailing 'Z'
        field: Name reported in the validation error

    Returns:
        Naive UTC datetime, or None when value is empty

    Raises:
        ValidationError: If the value is not ISO-8601
    """
    if value is None or value == "":
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid {field} timestamp. Use ISO-8601 format: {value}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Serialize a naive UTC datetime as ISO-8601 with a 'Z' suffix."""
    if value is None:
        return None
    return value.isoformat() + "Z"
