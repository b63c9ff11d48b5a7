"""Refresh state, triggers and decisions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class Trigger(StrEnum):
    BOUNDARY_TIMER = "boundary-timer"
    PERIODIC_TASK = "periodic-task"
    CONNECTIVITY_AVAILABLE = "connectivity-available"
    LOCALE_CHANGED = "locale-changed"
    TIMEZONE_CHANGED = "timezone-changed"
    DISPLAY_RESIZED = "display-resized"
    DISPLAY_UNLOCKED = "display-unlocked"
    THEME_CHANGED = "theme-changed"
    INSTANCE_REMOVED = "instance-removed"


class DimensionSource(StrEnum):
    REPORTED = "reported"
    PERSISTED = "persisted"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class RefreshState:
    last_fetch_at: datetime | None = None
    last_render_at: datetime | None = None
    width_px: int = 0
    height_px: int = 0


@dataclass(frozen=True)
class Dimensions:
    width_px: int
    height_px: int
    source: DimensionSource


@dataclass(frozen=True)
class RefreshDecision:
    fetch_needed: bool
    render_needed: bool
    dimensions: Dimensions
    reasons: tuple[str, ...] = ()


@dataclass
class RefreshOutcome:
    trigger: Trigger
    fetched: bool = False
    rendered: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
