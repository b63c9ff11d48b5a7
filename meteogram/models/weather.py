"""Hourly weather series models."""

from dataclasses import dataclass
from datetime import datetime

PAST_HOURS = 6
FORECAST_HOURS = 46
DISPLAY_RANGE_HOURS = PAST_HOURS + FORECAST_HOURS


@dataclass(frozen=True)
class HourlyDataPoint:
    timestamp: datetime  # aware, UTC
    temperature_c: float
    precipitation_mm: float = 0.0
    cloud_cover_pct: int = 0


@dataclass(frozen=True)
class DisplayWindow:
    points: tuple[HourlyDataPoint, ...]
    now_index: int
    latitude: float
    longitude: float

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class WeatherSeries:
    timezone: str
    latitude: float
    longitude: float
    fetched_at: datetime
    points: tuple[HourlyDataPoint, ...]

    def get_display_range(
        self, past_hours: int = PAST_HOURS, forecast_hours: int = FORECAST_HOURS
    ) -> tuple[HourlyDataPoint, ...]:
        """First past+forecast hours of the series, or all of it if shorter."""
        end = min(past_hours + forecast_hours, len(self.points))
        return self.points[:end]

    def get_now_index(self, past_hours: int = PAST_HOURS) -> int:
        """Index of the current hour: past_hours clamped into the series."""
        if not self.points:
            return 0
        return max(0, min(past_hours, len(self.points) - 1))

    def display_window(
        self, past_hours: int = PAST_HOURS, forecast_hours: int = FORECAST_HOURS
    ) -> DisplayWindow:
        points = self.get_display_range(past_hours, forecast_hours)
        now_index = max(0, min(past_hours, len(points) - 1)) if points else 0
        return DisplayWindow(
            points=points,
            now_index=now_index,
            latitude=self.latitude,
            longitude=self.longitude,
        )

    def current_temperature(self, past_hours: int = PAST_HOURS) -> float | None:
        if not self.points:
            return None
        return self.points[self.get_now_index(past_hours)].temperature_c
