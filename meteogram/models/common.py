"""Common types and helpers shared across models."""

import re
from datetime import UTC, datetime, timedelta
from typing import TypeAlias

InstanceId: TypeAlias = str

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
DEFAULT_INSTANCE: InstanceId = "default"


def utc_now() -> datetime:
    return datetime.now(UTC)


def epoch_ms(dt: datetime) -> int:
    """Whole milliseconds since the Unix epoch for an aware datetime."""
    return (dt - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts minute, second, millisecond or microsecond precision, with or
    without a 'Z'/offset suffix. The wall-clock digits are always read as
    UTC; an offset is ignored, not applied.
    Returns None when the value cannot be parsed.
    """
    if not isinstance(value, str):
        return None
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value.strip(), count=1)
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    return dt.replace(tzinfo=UTC)


def format_timestamp(dt: datetime) -> str:
    """Millisecond ISO-8601 with a 'Z' suffix, e.g. 2026-01-01T00:00:00.000Z."""
    utc = dt.astimezone(UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
