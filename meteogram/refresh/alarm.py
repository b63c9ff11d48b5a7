"""Boundary alarm verifier.

Host timers are imprecise and may fire early. The alarm is scheduled a few
seconds past the boundary and, when it fires, the wall-clock minute is
checked before the render callback runs. An early fire is answered by
re-arming, never by waiting in-process.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Protocol
from zoneinfo import ZoneInfo

from meteogram.config.schema import AlarmPolicy

logger = logging.getLogger(__name__)

TIMER_NAME = "boundary-alarm"
DEFAULT_BUFFER_SECONDS = 15
HALF_HOUR_MINUTE = 30


class AlarmState(StrEnum):
    IDLE = "idle"
    ARMED = "armed"
    VERIFYING = "verifying"


class TimerFacility(Protocol):
    def schedule(self, name: str, when: datetime) -> None:
        """Schedule a one-shot wake. Replaces any pending wake with the same name."""
        ...

    def cancel(self, name: str) -> None: ...


def next_boundary(
    now: datetime,
    policy: AlarmPolicy,
    buffer_seconds: int = DEFAULT_BUFFER_SECONDS,
    tz: str = "UTC",
) -> datetime:
    """Next wake time strictly after now, as an aware UTC datetime.

    Boundaries are XX:00 (hourly) or XX:30 (half-hour) on the wall clock of tz,
    plus buffer_seconds.
    """
    local = now.astimezone(ZoneInfo(tz))
    minute = 0 if policy == AlarmPolicy.HOURLY else HALF_HOUR_MINUTE
    buffer = timedelta(seconds=buffer_seconds)
    boundary = local.replace(minute=minute, second=0, microsecond=0)
    if boundary + buffer <= local:
        boundary += timedelta(hours=1)
    return (boundary + buffer).astimezone(UTC)


class BoundaryAlarmVerifier:
    def __init__(
        self,
        timers: TimerFacility,
        on_boundary: Callable[[datetime], None],
        policy: AlarmPolicy = AlarmPolicy.HALF_HOUR,
        buffer_seconds: int = DEFAULT_BUFFER_SECONDS,
        max_valid_minute: int = HALF_HOUR_MINUTE,
        tz: str = "UTC",
    ):
        self.timers = timers
        self.on_boundary = on_boundary
        self.policy = policy
        self.buffer_seconds = buffer_seconds
        self.max_valid_minute = max_valid_minute
        self.tz = tz
        self.state = AlarmState.IDLE
        self.next_wake: datetime | None = None

    def arm(self, now: datetime) -> datetime:
        """Schedule the next wake, replacing any pending one."""
        wake = next_boundary(now, self.policy, self.buffer_seconds, self.tz)
        self.timers.schedule(TIMER_NAME, wake)
        self.next_wake = wake
        self.state = AlarmState.ARMED
        logger.debug("Boundary alarm armed for %s (%s)", wake.isoformat(), self.policy)
        return wake

    def disarm(self) -> None:
        self.timers.cancel(TIMER_NAME)
        self.next_wake = None
        self.state = AlarmState.IDLE
        logger.debug("Boundary alarm disarmed")

    def is_past_boundary(self, now: datetime) -> bool:
        minute = now.astimezone(ZoneInfo(self.tz)).minute
        if self.policy == AlarmPolicy.HOURLY:
            return minute <= self.max_valid_minute
        return minute >= HALF_HOUR_MINUTE

    def on_fire(self, now: datetime) -> bool:
        """Handle a timer fire. Returns True if the boundary was confirmed.

        The alarm is re-armed on every path, including when the callback raises.
        """
        self.state = AlarmState.VERIFYING
        try:
            if not self.is_past_boundary(now):
                logger.warning(
                    "Boundary alarm fired early at %s, re-arming", now.isoformat()
                )
                return False
            logger.info("Boundary confirmed at %s", now.isoformat())
            self.on_boundary(now)
            return True
        finally:
            self.arm(now)
