"""Persisted refresh state on top of a string key-value store.

Timestamps are stored as integer epoch milliseconds. Per-instance keys live
under ``instance.<id>.`` so removing an instance is a single prefix delete.
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Protocol

from meteogram.models.common import InstanceId, epoch_ms, from_epoch_ms
from meteogram.models.refresh import RefreshState
from meteogram.storage import state_repo

logger = logging.getLogger(__name__)

KEY_LAST_FETCH = "fetch.last_at"
KEY_PAYLOAD = "cache.payload"
KEY_LOCATION = "cache.location"
INSTANCE_PREFIX = "instance."


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...
    def delete_prefix(self, prefix: str) -> int: ...
    def keys(self, prefix: str = "") -> list[str]: ...


class SqliteKeyValueStore:
    """KeyValueStore backed by the kv_state table. Writes commit immediately."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def get(self, key: str) -> str | None:
        return state_repo.get_value(self._conn, key)

    def set(self, key: str, value: str) -> None:
        state_repo.set_value(self._conn, key, value)

    def delete(self, key: str) -> None:
        state_repo.delete_value(self._conn, key)

    def delete_prefix(self, prefix: str) -> int:
        return state_repo.delete_prefix(self._conn, prefix)

    def keys(self, prefix: str = "") -> list[str]:
        return state_repo.list_keys(self._conn, prefix)


class InMemoryKeyValueStore:
    """Dict-backed KeyValueStore for tests and one-shot runs."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        doomed = [k for k in self.data if k.startswith(prefix)]
        for k in doomed:
            del self.data[k]
        return len(doomed)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


def _instance_key(instance_id: InstanceId, name: str) -> str:
    return f"{INSTANCE_PREFIX}{instance_id}.{name}"


class RefreshStateStore:
    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    # --- Timestamps and dimensions ---

    def get(self, instance_id: InstanceId) -> RefreshState:
        return RefreshState(
            last_fetch_at=self.last_fetch_at(),
            last_render_at=self._get_time(_instance_key(instance_id, "last_render_at")),
            width_px=self._get_int(_instance_key(instance_id, "width_px")),
            height_px=self._get_int(_instance_key(instance_id, "height_px")),
        )

    def last_fetch_at(self) -> datetime | None:
        return self._get_time(KEY_LAST_FETCH)

    def set_last_fetch(self, when: datetime) -> None:
        self.kv.set(KEY_LAST_FETCH, str(epoch_ms(when)))

    def set_last_render(self, instance_id: InstanceId, when: datetime) -> None:
        self.kv.set(_instance_key(instance_id, "last_render_at"), str(epoch_ms(when)))

    def set_dimensions(self, instance_id: InstanceId, width_px: int, height_px: int) -> None:
        self.kv.set(_instance_key(instance_id, "width_px"), str(width_px))
        self.kv.set(_instance_key(instance_id, "height_px"), str(height_px))

    def remove(self, instance_id: InstanceId) -> int:
        """Delete all state for one instance. Returns the number of keys removed."""
        return self.kv.delete_prefix(_instance_key(instance_id, ""))

    def instance_ids(self) -> list[InstanceId]:
        ids = set()
        for key in self.kv.keys(INSTANCE_PREFIX):
            instance_id, _, _ = key[len(INSTANCE_PREFIX):].rpartition(".")
            if instance_id:
                ids.add(instance_id)
        return sorted(ids)

    # --- Cached weather ---

    def save_payload(self, payload: dict[str, Any]) -> None:
        self.kv.set(KEY_PAYLOAD, json.dumps(payload))

    def load_payload(self) -> dict[str, Any] | None:
        raw = self.kv.get(KEY_PAYLOAD)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt cached payload")
            return None

    def save_location(self, latitude: float, longitude: float) -> None:
        self.kv.set(KEY_LOCATION, json.dumps({"latitude": latitude, "longitude": longitude}))

    def load_location(self) -> tuple[float, float] | None:
        raw = self.kv.get(KEY_LOCATION)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return float(data["latitude"]), float(data["longitude"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning("Discarding corrupt cached location")
            return None

    def _get_int(self, key: str) -> int:
        raw = self.kv.get(key)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring non-integer value for %s: %r", key, raw)
            return 0

    def _get_time(self, key: str) -> datetime | None:
        ms = self._get_int(key)
        return from_epoch_ms(ms) if ms > 0 else None
