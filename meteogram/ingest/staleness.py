"""Staleness checks for fetched weather and rendered charts."""

from datetime import UTC, datetime, timedelta

from meteogram.models.common import epoch_ms


def age_minutes(fetched_at: datetime | None, now: datetime | None = None) -> float:
    """Age of a fetch in minutes; infinite when never fetched."""
    if fetched_at is None:
        return float("inf")
    if now is None:
        now = datetime.now(UTC)
    return (now - fetched_at).total_seconds() / 60


def is_stale(
    fetched_at: datetime | None, threshold: timedelta, now: datetime | None = None
) -> bool:
    """Stale once strictly older than threshold, compared in whole milliseconds."""
    if fetched_at is None:
        return True
    if now is None:
        now = datetime.now(UTC)
    return epoch_ms(now) - epoch_ms(fetched_at) > threshold // timedelta(milliseconds=1)


def slot_index(when: datetime | None, slot: timedelta) -> int:
    """Integer slot number since the epoch; an unset time is slot 0."""
    if when is None:
        return 0
    return epoch_ms(when) // (slot // timedelta(milliseconds=1))


def crossed_slot(last: datetime | None, now: datetime, slot: timedelta) -> bool:
    return slot_index(now, slot) > slot_index(last, slot)
