"""Pydantic v2 configuration schema with strict validation."""

from enum import StrEnum

from pydantic import BaseModel, Field


class AlarmPolicy(StrEnum):
    HOURLY = "hourly"          # boundary at XX:00
    HALF_HOUR = "half-hour"    # boundary at XX:30, when the now-indicator snaps


class LocationConfig(BaseModel):
    model_config = {"extra": "forbid"}

    name: str = ""
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


class DisplayConfig(BaseModel):
    model_config = {"extra": "forbid"}

    past_hours: int = Field(default=6, ge=0)
    forecast_hours: int = Field(default=46, ge=1)
    locale: str = "en_US"
    use_fahrenheit: bool | None = None  # None: derive from locale
    use_24_hour_clock: bool = True
    past_fade: bool = True
    timezone: str = "UTC"
    fallback_width_px: int = Field(default=1000, gt=0)
    fallback_height_px: int = Field(default=500, gt=0)
    themes: list[str] = ["light", "dark"]


class RefreshConfig(BaseModel):
    model_config = {"extra": "forbid"}

    stale_threshold_minutes: int = Field(default=15, ge=1)
    slot_minutes: int = Field(default=30, ge=1)
    alarm_policy: AlarmPolicy = AlarmPolicy.HALF_HOUR
    alarm_buffer_seconds: int = Field(default=15, ge=0, le=300)
    max_valid_minute: int = Field(default=30, ge=0, le=59)
    periodic_interval_minutes: int = Field(default=30, ge=1)


class FetchConfig(BaseModel):
    model_config = {"extra": "forbid"}

    base_url: str = "https://api.open-meteo.com/v1/forecast"
    timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_retries: int = Field(default=2, ge=0)
    retry_base_delay: float = Field(default=2.0, ge=0.0)
    forecast_days: int = Field(default=2, ge=1, le=16)


class OutputConfig(BaseModel):
    model_config = {"extra": "forbid"}

    chart_dir: str = "data/charts"


class MeteogramConfig(BaseModel):
    model_config = {"extra": "forbid"}

    location: LocationConfig | None = None
    display: DisplayConfig = DisplayConfig()
    refresh: RefreshConfig = RefreshConfig()
    fetch: FetchConfig = FetchConfig()
    output: OutputConfig = OutputConfig()
