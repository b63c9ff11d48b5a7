"""Shared test fixtures."""

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

from meteogram.models.common import format_timestamp
from meteogram.storage.database import open_database
from meteogram.storage.refresh_store import InMemoryKeyValueStore, RefreshStateStore

SERIES_START = datetime(2026, 1, 15, 0, 0, tzinfo=UTC)


def build_payload(
    hours: int = 52,
    start: datetime = SERIES_START,
    temperatures: list | None = None,
    precipitation: list | None = None,
    cloud_cover: list | None = None,
    latitude: float = 52.52,
    longitude: float = 13.41,
) -> dict:
    """Cached-format payload with one sample per hour from start."""
    times = [format_timestamp(start + timedelta(hours=i)) for i in range(hours)]
    return {
        "timezone": "UTC",
        "latitude": latitude,
        "longitude": longitude,
        "fetchedAt": format_timestamp(start + timedelta(hours=6)),
        "hourly": {
            "time": times,
            "temperature_2m": temperatures if temperatures is not None
            else [10.0 + (i % 24) * 0.5 for i in range(hours)],
            "precipitation": precipitation if precipitation is not None else [0.0] * hours,
            "cloud_cover": cloud_cover if cloud_cover is not None else [0] * hours,
        },
    }


@pytest.fixture
def payload_factory():
    """Return the payload builder so tests can vary shape and values."""
    return build_payload


@pytest.fixture
def payload() -> dict:
    return build_payload()


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv: InMemoryKeyValueStore) -> RefreshStateStore:
    return RefreshStateStore(kv)


@pytest.fixture
def tmp_db(tmp_path: Path) -> sqlite3.Connection:
    """Temporary SQLite database with all migrations applied."""
    conn = open_database(tmp_path / "test.db")
    yield conn
    conn.close()


@pytest.fixture
def config_yaml_path(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    data = {
        "location": {"name": "Berlin", "latitude": 52.52, "longitude": 13.41},
        "refresh": {"stale_threshold_minutes": 15, "alarm_policy": "half-hour"},
        "output": {"chart_dir": str(tmp_path / "charts")},
    }
    path = tmp_path / "test_config.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
