"""Refresh daemon: the host loop that drives the coordinator.

Fires a periodic-task trigger on a fixed interval and delivers due boundary
timers to the alarm verifier. Timers live in the database, so a wake that
falls due while the daemon is down is delivered on the next tick.

Usage:
    python -m meteogram daemon --config config.yaml
    python -m meteogram daemon --stop
"""

import json
import logging
import os
import signal
import sys
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path

from meteogram.config.schema import MeteogramConfig
from meteogram.models.refresh import RefreshOutcome, Trigger
from meteogram.refresh.alarm import TIMER_NAME, BoundaryAlarmVerifier
from meteogram.refresh.coordinator import RefreshCoordinator, build_coordinator
from meteogram.refresh.timers import StoreTimerFacility
from meteogram.storage.database import open_database
from meteogram.storage.refresh_store import RefreshStateStore, SqliteKeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TICK = 15  # seconds between timer polls
RETRY_BASE_DELAY = 60  # first retry after a failed cycle
PID_DIR = Path("data")
PID_FILE = PID_DIR / "daemon.pid"
STATE_FILE = PID_DIR / "daemon_state.json"
LOG_DIR = Path("logs")
MAX_LOG_FILES = 100


class RefreshDaemon:
    """Runs refresh cycles in a loop with signal handling and failure retry."""

    def __init__(
        self,
        config: MeteogramConfig,
        db_path: str = "data/meteogram.db",
        interval: int | None = None,
        tick: int = DEFAULT_TICK,
        coordinator: RefreshCoordinator | None = None,
    ):
        self.config = config
        self.db_path = db_path
        self.interval = interval or config.refresh.periodic_interval_minutes * 60
        self.tick = tick
        self._coordinator = coordinator
        self._running = False
        self._consecutive_failures = 0
        self._total_cycles = 0
        self._total_successes = 0
        self._total_failures = 0
        self._started_at: str | None = None
        self._next_periodic: datetime | None = None
        self._boundary_outcomes: list[RefreshOutcome] = []
        self._conn = None
        self.timers: StoreTimerFacility | None = None
        self.verifier: BoundaryAlarmVerifier | None = None

    def open(self) -> None:
        """Connect storage and wire the coordinator, timers and verifier."""
        self._conn = open_database(self.db_path)
        kv = SqliteKeyValueStore(self._conn)
        if self._coordinator is None:
            self._coordinator = build_coordinator(self.config, RefreshStateStore(kv))
        self.timers = StoreTimerFacility(kv)
        self.verifier = BoundaryAlarmVerifier(
            self.timers,
            on_boundary=self._on_boundary,
            policy=self.config.refresh.alarm_policy,
            buffer_seconds=self.config.refresh.alarm_buffer_seconds,
            max_valid_minute=self.config.refresh.max_valid_minute,
            tz=self.config.display.timezone,
        )

    def start(self) -> None:
        """Start the daemon loop."""
        self._check_not_already_running()
        self._write_pid()
        self._setup_signals()
        self.open()
        self._running = True
        self._started_at = datetime.now(UTC).isoformat()

        logger.info(
            "Daemon started, interval=%ds tick=%ds pid=%d",
            self.interval, self.tick, os.getpid(),
        )
        print(f"🔄 Meteogram daemon started (pid {os.getpid()}, every {self.interval}s)")
        print(f"   Logs: {LOG_DIR}/")
        print("   Stop: python -m meteogram daemon --stop")

        try:
            self._loop()
        except KeyboardInterrupt:
            logger.info("Daemon interrupted by keyboard")
        finally:
            self._cleanup()

    def _loop(self) -> None:
        while self._running:
            self.run_once(datetime.now(UTC))
            self._save_state()

            sleep_until = time.monotonic() + self.tick
            while self._running and time.monotonic() < sleep_until:
                time.sleep(1)

    def run_once(self, now: datetime) -> list[RefreshOutcome]:
        """One tick: deliver due boundary timers, then the periodic trigger if due."""
        assert self.timers is not None and self.verifier is not None
        outcomes: list[RefreshOutcome] = []
        self._boundary_outcomes = outcomes

        if TIMER_NAME not in self.timers.pending():
            self.verifier.arm(now)
        elif TIMER_NAME in self.timers.due(now):
            self.verifier.on_fire(now)

        if self._next_periodic is None or now >= self._next_periodic:
            outcome = self._run_cycle(Trigger.PERIODIC_TASK, now)
            outcomes.append(outcome)
            if outcome.errors:
                self._consecutive_failures += 1
                delay = min(
                    RETRY_BASE_DELAY * (2 ** (self._consecutive_failures - 1)),
                    self.interval,
                )
                logger.warning(
                    "Cycle failed (%d consecutive), retrying in %ds",
                    self._consecutive_failures, delay,
                )
            else:
                self._consecutive_failures = 0
                delay = self.interval
            self._next_periodic = now + timedelta(seconds=delay)

        return outcomes

    def _on_boundary(self, now: datetime) -> None:
        outcome = self._run_cycle(Trigger.BOUNDARY_TIMER, now)
        self._boundary_outcomes.append(outcome)

    def _run_cycle(self, trigger: Trigger, now: datetime) -> RefreshOutcome:
        """Run one coordinator cycle with a per-cycle log file."""
        assert self._coordinator is not None
        self._total_cycles += 1
        timestamp = now.strftime("%Y%m%dT%H%M%SZ")

        LOG_DIR.mkdir(parents=True, exist_ok=True)
        log_file = LOG_DIR / f"refresh_{timestamp}_{trigger}.log"

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)

        try:
            logger.info("=== Cycle #%d (%s) starting ===", self._total_cycles, trigger)
            outcome = self._coordinator.handle(trigger, now=now)
        except Exception as e:
            self._total_failures += 1
            logger.exception("Cycle #%d crashed", self._total_cycles)
            outcome = RefreshOutcome(trigger=trigger, errors=[f"crash: {e}"])
            return outcome
        finally:
            root_logger.removeHandler(file_handler)
            file_handler.close()
            self._rotate_logs()

        if outcome.errors:
            self._total_failures += 1
            logger.error("Cycle #%d completed with errors: %s", self._total_cycles, outcome.errors)
        else:
            self._total_successes += 1
        return outcome

    def _rotate_logs(self) -> None:
        """Keep only the most recent log files."""
        if not LOG_DIR.exists():
            return
        logs = sorted(LOG_DIR.glob("refresh_*.log"))
        if len(logs) > MAX_LOG_FILES:
            for old in logs[: len(logs) - MAX_LOG_FILES]:
                old.unlink(missing_ok=True)

    def _setup_signals(self) -> None:
        """Handle SIGTERM and SIGINT for graceful shutdown."""
        def _stop(signum: int, frame: object) -> None:
            sig_name = signal.Signals(signum).name
            logger.info("Received %s, shutting down gracefully...", sig_name)
            print(f"\n⏹️  Received {sig_name}, finishing current cycle...")
            self._running = False

        signal.signal(signal.SIGTERM, _stop)
        signal.signal(signal.SIGINT, _stop)

    def _check_not_already_running(self) -> None:
        """Prevent duplicate daemons."""
        if PID_FILE.exists():
            try:
                pid = int(PID_FILE.read_text().strip())
                os.kill(pid, 0)
                print(f"❌ Daemon already running (pid {pid}). Stop it first:")
                print("   python -m meteogram daemon --stop")
                sys.exit(1)
            except (ProcessLookupError, ValueError):
                # Stale PID file
                PID_FILE.unlink(missing_ok=True)
            except PermissionError:
                print(f"❌ Daemon may be running (pid {pid}), can't verify.")
                sys.exit(1)

    def _write_pid(self) -> None:
        PID_DIR.mkdir(parents=True, exist_ok=True)
        PID_FILE.write_text(str(os.getpid()))

    def _save_state(self) -> None:
        """Persist daemon stats for status reporting."""
        assert self.verifier is not None
        state = {
            "pid": os.getpid(),
            "started_at": self._started_at,
            "interval": self.interval,
            "alarm_policy": self.verifier.policy.value,
            "alarm_state": self.verifier.state.value,
            "next_boundary": self.verifier.next_wake.isoformat() if self.verifier.next_wake else None,
            "total_cycles": self._total_cycles,
            "total_successes": self._total_successes,
            "total_failures": self._total_failures,
            "consecutive_failures": self._consecutive_failures,
            "last_update": datetime.now(UTC).isoformat(),
        }
        STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
        STATE_FILE.write_text(json.dumps(state, indent=2))

    def _cleanup(self) -> None:
        """Remove PID file on exit."""
        PID_FILE.unlink(missing_ok=True)
        if self.verifier is not None:
            self._save_state()
        if self._conn is not None:
            self._conn.close()
        logger.info(
            "Daemon stopped, %d cycles (%d ok, %d failed)",
            self._total_cycles, self._total_successes, self._total_failures,
        )
        print(
            f"⏹️  Daemon stopped after {self._total_cycles} cycles "
            f"({self._total_successes} ok, {self._total_failures} failed)"
        )


def stop_daemon() -> int:
    """Stop a running daemon by sending SIGTERM."""
    if not PID_FILE.exists():
        print("No daemon running (no PID file found)")
        return 1

    try:
        pid = int(PID_FILE.read_text().strip())
    except ValueError:
        print("Corrupt PID file, removing")
        PID_FILE.unlink(missing_ok=True)
        return 1

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        print(f"Daemon not running (stale pid {pid}), cleaning up")
        PID_FILE.unlink(missing_ok=True)
        STATE_FILE.unlink(missing_ok=True)
        return 0

    print(f"Stopping daemon (pid {pid})...")
    os.kill(pid, signal.SIGTERM)

    # Wait up to 30s for graceful shutdown
    for _ in range(30):
        time.sleep(1)
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            print("✅ Daemon stopped")
            PID_FILE.unlink(missing_ok=True)
            return 0

    print("⚠️  Daemon didn't stop in 30s, sending SIGKILL")
    os.kill(pid, signal.SIGKILL)
    PID_FILE.unlink(missing_ok=True)
    return 0


def daemon_status() -> int:
    """Print daemon status from state file."""
    if not STATE_FILE.exists():
        print("No daemon state found")
        if PID_FILE.exists():
            try:
                pid = int(PID_FILE.read_text().strip())
                os.kill(pid, 0)
                print(f"  (but PID file exists: {pid}, process running)")
            except (ProcessLookupError, ValueError):
                print("  (stale PID file found)")
        return 1

    state = json.loads(STATE_FILE.read_text())
    pid = state.get("pid", "?")

    running = False
    try:
        os.kill(int(pid), 0)
        running = True
    except (ProcessLookupError, ValueError, TypeError):
        pass

    status_icon = "🟢" if running else "🔴"
    print(f"{status_icon} Daemon {'running' if running else 'stopped'}")
    print(f"  PID: {pid}")
    print(f"  Interval: {state.get('interval', '?')}s")
    print(f"  Alarm: {state.get('alarm_policy', '?')} ({state.get('alarm_state', '?')})")
    print(f"  Next boundary: {state.get('next_boundary') or '-'}")
    print(f"  Started: {state.get('started_at', '?')}")
    print(f"  Total cycles: {state.get('total_cycles', 0)}")
    print(f"  Successes: {state.get('total_successes', 0)}")
    print(f"  Failures: {state.get('total_failures', 0)}")
    print(f"  Consecutive failures: {state.get('consecutive_failures', 0)}")
    print(f"  Last update: {state.get('last_update', '?')}")
    return 0
