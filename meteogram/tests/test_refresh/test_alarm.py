"""Tests for the boundary alarm verifier."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from meteogram.config.schema import AlarmPolicy
from meteogram.refresh.alarm import (
    TIMER_NAME,
    AlarmState,
    BoundaryAlarmVerifier,
    next_boundary,
)
from meteogram.refresh.timers import StoreTimerFacility


def _at(hour: int, minute: int, second: int = 0) -> datetime:
    return datetime(2026, 1, 15, hour, minute, second, tzinfo=UTC)


class FakeTimers:
    def __init__(self):
        self.pending: dict[str, datetime] = {}
        self.scheduled: list[tuple[str, datetime]] = []

    def schedule(self, name, when):
        self.pending[name] = when
        self.scheduled.append((name, when))

    def cancel(self, name):
        self.pending.pop(name, None)


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


class TestNextBoundary:
    def test_half_hour(self):
        assert next_boundary(_at(12, 10), AlarmPolicy.HALF_HOUR) == _at(12, 30, 15)

    def test_half_hour_inside_buffer(self):
        assert next_boundary(_at(12, 30, 10), AlarmPolicy.HALF_HOUR) == _at(12, 30, 15)

    def test_half_hour_after_buffer(self):
        assert next_boundary(_at(12, 30, 15), AlarmPolicy.HALF_HOUR) == _at(13, 30, 15)

    def test_hourly(self):
        assert next_boundary(_at(12, 10), AlarmPolicy.HOURLY) == _at(13, 0, 15)

    def test_custom_buffer(self):
        assert next_boundary(_at(12, 10), AlarmPolicy.HOURLY, buffer_seconds=0) == _at(13, 0)

    def test_half_hour_offset_timezone(self):
        # 12:10 UTC is 17:40 in Kolkata; next local XX:30 is 18:30
        wake = next_boundary(_at(12, 10), AlarmPolicy.HALF_HOUR, tz="Asia/Kolkata")
        assert wake == _at(13, 0, 15)
        assert wake.tzinfo == UTC

    def test_strictly_after_now(self):
        now = _at(23, 59, 59)
        assert next_boundary(now, AlarmPolicy.HOURLY) > now


class TestVerification:
    @pytest.mark.parametrize("minute,valid", [(29, False), (30, True), (45, True), (0, False)])
    def test_half_hour_policy(self, timers, minute, valid):
        verifier = BoundaryAlarmVerifier(timers, MagicMock(), AlarmPolicy.HALF_HOUR)
        assert verifier.is_past_boundary(_at(12, minute)) is valid

    @pytest.mark.parametrize("minute,valid", [(0, True), (30, True), (31, False), (59, False)])
    def test_hourly_policy(self, timers, minute, valid):
        verifier = BoundaryAlarmVerifier(timers, MagicMock(), AlarmPolicy.HOURLY)
        assert verifier.is_past_boundary(_at(12, minute)) is valid

    def test_hourly_uses_local_minute(self, timers):
        verifier = BoundaryAlarmVerifier(
            timers, MagicMock(), AlarmPolicy.HOURLY, tz="Asia/Kolkata"
        )
        # 12:35 UTC is 18:05 local
        assert verifier.is_past_boundary(_at(12, 35))


class TestFire:
    def test_arm(self, timers):
        verifier = BoundaryAlarmVerifier(timers, MagicMock())
        wake = verifier.arm(_at(12, 10))
        assert wake == _at(12, 30, 15)
        assert timers.pending == {TIMER_NAME: wake}
        assert verifier.state == AlarmState.ARMED

    def test_early_fire_rearms_without_callback(self, timers):
        callback = MagicMock()
        verifier = BoundaryAlarmVerifier(timers, callback)
        verifier.arm(_at(12, 10))

        assert verifier.on_fire(_at(12, 29, 50)) is False
        callback.assert_not_called()
        assert timers.pending[TIMER_NAME] == _at(12, 30, 15)
        assert verifier.state == AlarmState.ARMED

    def test_valid_fire_runs_callback_and_rearms(self, timers):
        callback = MagicMock()
        verifier = BoundaryAlarmVerifier(timers, callback)
        now = _at(12, 30, 15)

        assert verifier.on_fire(now) is True
        callback.assert_called_once_with(now)
        assert timers.pending[TIMER_NAME] == _at(13, 30, 15)

    def test_rearms_when_callback_raises(self, timers):
        verifier = BoundaryAlarmVerifier(timers, MagicMock(side_effect=RuntimeError("boom")))
        with pytest.raises(RuntimeError):
            verifier.on_fire(_at(12, 30, 15))
        assert timers.pending[TIMER_NAME] == _at(13, 30, 15)
        assert verifier.state == AlarmState.ARMED

    def test_rearm_replaces_pending(self, kv):
        timers = StoreTimerFacility(kv)
        verifier = BoundaryAlarmVerifier(timers, MagicMock())
        verifier.arm(_at(12, 10))
        verifier.arm(_at(12, 40))
        assert timers.pending() == {TIMER_NAME: _at(13, 30, 15)}

    def test_disarm(self, timers):
        verifier = BoundaryAlarmVerifier(timers, MagicMock())
        verifier.arm(_at(12, 10))
        verifier.disarm()
        assert timers.pending == {}
        assert verifier.state == AlarmState.IDLE
        assert verifier.next_wake is None
