"""Weather fetcher: retrieves an Open-Meteo forecast and parses it into a series."""

import logging
from datetime import datetime
from typing import Any

from meteogram.ingest.openmeteo_client import OpenMeteoClient
from meteogram.ingest.series_parser import HOURLY_FIELDS, ParseError, parse_series, to_payload
from meteogram.models.common import format_timestamp, utc_now
from meteogram.models.weather import WeatherSeries

logger = logging.getLogger(__name__)


class WeatherFetcher:
    def __init__(self, client: OpenMeteoClient):
        self.client = client

    def fetch(
        self, latitude: float, longitude: float, now: datetime | None = None
    ) -> tuple[WeatherSeries, dict[str, Any]]:
        """Fetch, normalize and parse a forecast.

        Returns the series and its payload form for caching, so dropped
        entries are not cached. Raises httpx.HTTPError on transport failure
        and ParseError on a bad response.
        """
        if now is None:
            now = utc_now()
        logger.info("Fetching weather for %.4f, %.4f", latitude, longitude)
        raw = self.client.get_forecast(latitude, longitude)
        payload = transform_response(raw, now)
        series = parse_series(payload)
        logger.info(
            "Fetched %d hourly points (current %s°C)",
            len(series.points), series.current_temperature(),
        )
        return series, to_payload(series)


def transform_response(raw: Any, fetched_at: datetime) -> dict[str, Any]:
    """Convert an API response to the cached payload shape.

    API times like '2026-01-01T00:00' become '2026-01-01T00:00:00.000Z' and a
    'fetchedAt' stamp is added.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("hourly"), dict):
        raise ParseError("Response has no 'hourly' object")
    hourly = raw["hourly"]
    missing = [f for f in HOURLY_FIELDS if not isinstance(hourly.get(f), list)]
    if missing:
        raise ParseError(f"Response missing hourly fields: {', '.join(missing)}")
    if "latitude" not in raw or "longitude" not in raw:
        raise ParseError("Response missing coordinates")

    return {
        "timezone": raw.get("timezone") or "UTC",
        "latitude": raw["latitude"],
        "longitude": raw["longitude"],
        "fetchedAt": format_timestamp(fetched_at),
        "hourly": {
            "time": [normalize_time(t) for t in hourly["time"]],
            "temperature_2m": hourly["temperature_2m"],
            "precipitation": hourly["precipitation"],
            "cloud_cover": hourly["cloud_cover"],
        },
    }


def normalize_time(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if value.endswith("Z"):
        return value
    if "." in value:
        return value + "Z"
    if len(value) == 16:  # 2026-01-01T00:00
        return value + ":00.000Z"
    if len(value) == 19:
        return value + ".000Z"
    return value + "Z"
