"""
Timestamp helpers. Every datetime stored by this service is naive UTC.
"""

from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (with 'Z' or an offset) or a datetime.
    Returns None when the value is missing or unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return to_naive_utc(parsed)


def isoformat_z(value: datetime) -> str:
    """Render a naive UTC datetime the way the vendor API expects it."""
    return to_naive_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def from_epoch_millis(value: Any) -> Optional[datetime]:
    """Vendor expiry times are epoch milliseconds; ISO strings are accepted too."""
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    return parse_timestamp(value)
