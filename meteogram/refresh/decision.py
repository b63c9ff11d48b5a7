"""Refresh decision engine: whether to fetch, whether to render, at what size."""

import logging
from datetime import datetime, timedelta

from meteogram.ingest import staleness
from meteogram.models.common import InstanceId
from meteogram.models.refresh import (
    DimensionSource,
    Dimensions,
    RefreshDecision,
    Trigger,
)
from meteogram.storage.refresh_store import RefreshStateStore

logger = logging.getLogger(__name__)

DEFAULT_STALE_THRESHOLD = timedelta(minutes=15)
DEFAULT_SLOT_WIDTH = timedelta(minutes=30)
FALLBACK_WIDTH_PX = 1000
FALLBACK_HEIGHT_PX = 500

FETCH_TRIGGERS = frozenset({
    Trigger.PERIODIC_TASK,
    Trigger.CONNECTIVITY_AVAILABLE,
    Trigger.DISPLAY_UNLOCKED,
    Trigger.BOUNDARY_TIMER,
})

FORCED_RENDER_TRIGGERS = frozenset({
    Trigger.DISPLAY_RESIZED,
    Trigger.LOCALE_CHANGED,
    Trigger.TIMEZONE_CHANGED,
    Trigger.THEME_CHANGED,
})


class RefreshDecisionEngine:
    """Pure-ish decisions over persisted refresh state.

    Only resolve_dimensions and the record_* methods write to the store.
    Calling decide twice with the same inputs gives the same answer, so a
    duplicate trigger is harmless.
    """

    def __init__(
        self,
        store: RefreshStateStore,
        stale_threshold: timedelta = DEFAULT_STALE_THRESHOLD,
        slot_width: timedelta = DEFAULT_SLOT_WIDTH,
        fallback_width_px: int = FALLBACK_WIDTH_PX,
        fallback_height_px: int = FALLBACK_HEIGHT_PX,
    ):
        if fallback_width_px <= 0 or fallback_height_px <= 0:
            raise ValueError("Fallback dimensions must be positive")
        self.store = store
        self.stale_threshold = stale_threshold
        self.slot_width = slot_width
        self.fallback_width_px = fallback_width_px
        self.fallback_height_px = fallback_height_px

    def is_stale(self, now: datetime) -> bool:
        return staleness.is_stale(self.store.last_fetch_at(), self.stale_threshold, now)

    def is_render_needed(self, instance_id: InstanceId, now: datetime) -> bool:
        """New data since the last render, or a slot boundary crossed since it."""
        state = self.store.get(instance_id)
        if state.last_fetch_at is not None and (
            state.last_render_at is None or state.last_fetch_at > state.last_render_at
        ):
            return True
        return staleness.crossed_slot(state.last_render_at, now, self.slot_width)

    def resolve_dimensions(
        self, instance_id: InstanceId, reported: tuple[int, int] | None = None
    ) -> Dimensions:
        if reported is not None:
            width, height = reported
            if width > 0 and height > 0:
                self.store.set_dimensions(instance_id, width, height)
                return Dimensions(width, height, DimensionSource.REPORTED)

        state = self.store.get(instance_id)
        if state.width_px > 0 and state.height_px > 0:
            return Dimensions(state.width_px, state.height_px, DimensionSource.PERSISTED)

        logger.debug(
            "No usable size for %s, falling back to %dx%d",
            instance_id, self.fallback_width_px, self.fallback_height_px,
        )
        return Dimensions(
            self.fallback_width_px, self.fallback_height_px, DimensionSource.FALLBACK
        )

    def decide(
        self,
        trigger: Trigger,
        instance_id: InstanceId,
        now: datetime,
        reported: tuple[int, int] | None = None,
    ) -> RefreshDecision:
        dimensions = self.resolve_dimensions(instance_id, reported)
        reasons: list[str] = []

        fetch_needed = False
        if trigger in FETCH_TRIGGERS and self.is_stale(now):
            fetch_needed = True
            reasons.append("data stale")

        render_needed = False
        if trigger in FORCED_RENDER_TRIGGERS:
            render_needed = True
            reasons.append(f"forced by {trigger}")
        elif self.is_render_needed(instance_id, now):
            render_needed = True
            reasons.append("new data or slot crossed")

        decision = RefreshDecision(
            fetch_needed=fetch_needed,
            render_needed=render_needed,
            dimensions=dimensions,
            reasons=tuple(reasons),
        )
        logger.debug("Decision for %s on %s: %s", instance_id, trigger, decision)
        return decision

    def record_fetch(self, now: datetime) -> None:
        self.store.set_last_fetch(now)

    def record_render(self, instance_id: InstanceId, now: datetime) -> None:
        self.store.set_last_render(instance_id, now)

    def remove_instance(self, instance_id: InstanceId) -> None:
        removed = self.store.remove(instance_id)
        logger.info("Removed state for instance %s (%d keys)", instance_id, removed)
