"""Tests for the refresh daemon."""

import json
import os
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from meteogram.config.schema import MeteogramConfig
from meteogram.daemon import RefreshDaemon, daemon_status, stop_daemon
from meteogram.models.refresh import RefreshOutcome, Trigger
from meteogram.refresh.alarm import TIMER_NAME, AlarmState

NOW = datetime(2026, 1, 15, 12, 10, tzinfo=UTC)


@pytest.fixture
def tmp_data(tmp_path, monkeypatch):
    """Redirect PID/state/log files to temp directory."""
    pid_file = tmp_path / "daemon.pid"
    state_file = tmp_path / "daemon_state.json"
    monkeypatch.setattr("meteogram.daemon.PID_FILE", pid_file)
    monkeypatch.setattr("meteogram.daemon.PID_DIR", tmp_path)
    monkeypatch.setattr("meteogram.daemon.STATE_FILE", state_file)
    monkeypatch.setattr("meteogram.daemon.LOG_DIR", tmp_path / "logs")
    return {"pid": pid_file, "state": state_file, "dir": tmp_path}


@pytest.fixture
def coordinator():
    mock = MagicMock()
    mock.handle.side_effect = lambda trigger, now=None: RefreshOutcome(trigger=trigger)
    return mock


@pytest.fixture
def daemon(tmp_data, coordinator) -> RefreshDaemon:
    d = RefreshDaemon(
        MeteogramConfig(),
        db_path=str(tmp_data["dir"] / "test.db"),
        interval=1800,
        coordinator=coordinator,
    )
    d.open()
    yield d
    d._conn.close()


def _triggers(coordinator) -> list[Trigger]:
    return [c.args[0] for c in coordinator.handle.call_args_list]


class TestLifecycle:
    def test_start_writes_state_and_cleans_pid(self, tmp_data, coordinator):
        daemon = RefreshDaemon(
            MeteogramConfig(), db_path=str(tmp_data["dir"] / "test.db"), coordinator=coordinator
        )
        with patch.object(daemon, "_loop"), patch.object(daemon, "_setup_signals"):
            daemon.start()

        assert tmp_data["state"].exists()
        assert not tmp_data["pid"].exists()

    def test_interval_from_config(self, tmp_data):
        assert RefreshDaemon(MeteogramConfig()).interval == 30 * 60

    def test_prevents_duplicate_start(self, tmp_data):
        tmp_data["pid"].write_text(str(os.getpid()))
        with pytest.raises(SystemExit):
            RefreshDaemon(MeteogramConfig())._check_not_already_running()

    def test_cleans_stale_pid(self, tmp_data):
        tmp_data["pid"].write_text("999999999")
        RefreshDaemon(MeteogramConfig())._check_not_already_running()
        assert not tmp_data["pid"].exists()

    def test_saves_state(self, daemon, tmp_data):
        daemon.run_once(NOW)
        daemon._save_state()

        state = json.loads(tmp_data["state"].read_text())
        assert state["interval"] == 1800
        assert state["alarm_policy"] == "half-hour"
        assert state["alarm_state"] == AlarmState.ARMED
        assert state["next_boundary"] == "2026-01-15T12:30:15+00:00"
        assert state["total_cycles"] == 1
        assert state["total_successes"] == 1


class TestPeriodic:
    def test_first_tick_runs_cycle_and_arms(self, daemon, coordinator):
        outcomes = daemon.run_once(NOW)

        assert [o.trigger for o in outcomes] == [Trigger.PERIODIC_TASK]
        coordinator.handle.assert_called_once_with(Trigger.PERIODIC_TASK, now=NOW)
        assert daemon.timers.pending() == {TIMER_NAME: datetime(2026, 1, 15, 12, 30, 15, tzinfo=UTC)}

    def test_waits_for_interval(self, daemon, coordinator):
        daemon.run_once(NOW)
        assert daemon.run_once(NOW + timedelta(minutes=10)) == []
        daemon.run_once(NOW + timedelta(minutes=30))
        assert _triggers(coordinator).count(Trigger.PERIODIC_TASK) == 2

    def test_failure_retries_sooner(self, daemon, coordinator):
        coordinator.handle.side_effect = lambda trigger, now=None: RefreshOutcome(
            trigger=trigger, errors=["fetch: offline"]
        )
        daemon.run_once(NOW)
        assert daemon._next_periodic == NOW + timedelta(seconds=60)
        daemon.run_once(NOW + timedelta(seconds=60))
        assert daemon._next_periodic == NOW + timedelta(seconds=180)
        assert daemon._consecutive_failures == 2
        assert daemon._total_failures == 2

    def test_crash_is_contained(self, daemon, coordinator):
        coordinator.handle.side_effect = RuntimeError("boom")
        outcomes = daemon.run_once(NOW)
        assert outcomes[0].errors == ["crash: boom"]
        assert daemon._total_failures == 1

    def test_cycle_log_file(self, daemon, tmp_data):
        daemon.run_once(NOW)
        logs = list((tmp_data["dir"] / "logs").glob("refresh_*.log"))
        assert [p.name for p in logs] == ["refresh_20260115T121000Z_periodic-task.log"]


class TestBoundary:
    def test_due_timer_runs_boundary_cycle(self, daemon, coordinator):
        daemon.run_once(NOW)
        wake = datetime(2026, 1, 15, 12, 30, 15, tzinfo=UTC)

        outcomes = daemon.run_once(wake)

        assert [o.trigger for o in outcomes] == [Trigger.BOUNDARY_TIMER]
        assert daemon.timers.pending()[TIMER_NAME] == wake + timedelta(hours=1)

    def test_early_fire_rearms_without_cycle(self, daemon, coordinator):
        daemon.run_once(NOW)
        early = datetime(2026, 1, 15, 12, 29, 0, tzinfo=UTC)
        daemon.timers.schedule(TIMER_NAME, early)

        assert daemon.run_once(early + timedelta(seconds=30)) == []
        assert Trigger.BOUNDARY_TIMER not in _triggers(coordinator)
        assert daemon.timers.pending()[TIMER_NAME] == datetime(2026, 1, 15, 12, 30, 15, tzinfo=UTC)

    def test_missed_wake_delivered_late(self, daemon, coordinator):
        daemon.run_once(NOW)
        outcomes = daemon.run_once(datetime(2026, 1, 15, 12, 45, tzinfo=UTC))
        assert Trigger.BOUNDARY_TIMER in [o.trigger for o in outcomes]


def test_log_rotation(daemon, tmp_data, monkeypatch):
    monkeypatch.setattr("meteogram.daemon.MAX_LOG_FILES", 5)
    log_dir = tmp_data["dir"] / "logs"
    log_dir.mkdir()
    for i in range(8):
        (log_dir / f"refresh_{i:04d}.log").write_text(f"log {i}")

    daemon._rotate_logs()

    remaining = sorted(p.name for p in log_dir.glob("refresh_*.log"))
    assert remaining == [f"refresh_{i:04d}.log" for i in range(3, 8)]


class TestDaemonControl:
    def test_stop_no_daemon(self, tmp_data):
        assert stop_daemon() == 1

    def test_stop_stale_pid(self, tmp_data):
        tmp_data["pid"].write_text("999999999")
        assert stop_daemon() == 0
        assert not tmp_data["pid"].exists()

    def test_status_no_state(self, tmp_data):
        assert daemon_status() == 1

    def test_status_with_state(self, tmp_data, capsys):
        state = {
            "pid": 999999999,
            "started_at": "2026-01-01T00:00:00Z",
            "interval": 1800,
            "alarm_policy": "half-hour",
            "alarm_state": "armed",
            "next_boundary": "2026-01-01T00:30:15+00:00",
            "total_cycles": 10,
            "total_successes": 9,
            "total_failures": 1,
            "consecutive_failures": 0,
            "last_update": "2026-01-01T00:05:00Z",
        }
        tmp_data["state"].write_text(json.dumps(state))

        assert daemon_status() == 0
        out = capsys.readouterr().out
        assert "stopped" in out
        assert "half-hour (armed)" in out
        assert "Total cycles: 10" in out
