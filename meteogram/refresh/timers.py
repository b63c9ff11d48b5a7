"""Timer facility persisted in the key-value store.

A wake is one key per timer name, so scheduling the same name twice keeps a
single pending wake. The daemon polls due() and delivers fires.
"""

import logging
from datetime import datetime

from meteogram.models.common import epoch_ms, from_epoch_ms
from meteogram.storage.refresh_store import KeyValueStore

logger = logging.getLogger(__name__)

TIMER_PREFIX = "timer."


class StoreTimerFacility:
    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def schedule(self, name: str, when: datetime) -> None:
        self.kv.set(TIMER_PREFIX + name, str(epoch_ms(when)))

    def cancel(self, name: str) -> None:
        self.kv.delete(TIMER_PREFIX + name)

    def pending(self) -> dict[str, datetime]:
        result = {}
        for key in self.kv.keys(TIMER_PREFIX):
            raw = self.kv.get(key)
            if raw is None:
                continue
            try:
                result[key[len(TIMER_PREFIX):]] = from_epoch_ms(int(raw))
            except ValueError:
                logger.warning("Dropping timer %s with bad value %r", key, raw)
                self.kv.delete(key)
        return result

    def due(self, now: datetime) -> list[str]:
        """Names of timers whose wake time is at or before now."""
        return sorted(name for name, when in self.pending().items() if when <= now)
