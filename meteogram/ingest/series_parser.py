"""Parser for cached/fetched hourly weather payloads."""

import json
import logging
import math
from datetime import timedelta
from typing import Any

from meteogram.models.common import format_timestamp, parse_timestamp
from meteogram.models.weather import HourlyDataPoint, WeatherSeries

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("timezone", "latitude", "longitude", "fetchedAt")
HOURLY_FIELDS = ("time", "temperature_2m", "precipitation", "cloud_cover")
HOURLY_SPACING = timedelta(hours=1)


class ParseError(ValueError):
    """Payload cannot be turned into a WeatherSeries."""


def parse_series(payload: dict[str, Any] | str | bytes) -> WeatherSeries:
    """Validate and normalize a weather payload.

    Structural problems (missing fields, bad JSON, broken ordering) raise
    ParseError. Individual samples with a missing or unparsable time or
    temperature are dropped instead.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON payload: {e}") from e
    if not isinstance(payload, dict):
        raise ParseError("Payload must be a JSON object")

    missing = [f for f in REQUIRED_FIELDS if payload.get(f) is None]
    hourly = payload.get("hourly")
    if not isinstance(hourly, dict):
        missing.append("hourly")
    else:
        missing.extend(
            f"hourly.{f}" for f in HOURLY_FIELDS if not isinstance(hourly.get(f), list)
        )
    if missing:
        raise ParseError(f"Missing required fields: {', '.join(missing)}")

    latitude = _to_float(payload["latitude"])
    longitude = _to_float(payload["longitude"])
    if latitude is None or longitude is None:
        raise ParseError("latitude/longitude must be numbers")

    fetched_at = parse_timestamp(payload["fetchedAt"])
    if fetched_at is None:
        raise ParseError(f"Unparsable fetchedAt: {payload['fetchedAt']!r}")

    times, temperatures, precipitation, cloud_cover = (hourly[f] for f in HOURLY_FIELDS)
    length = min(len(times), len(temperatures), len(precipitation), len(cloud_cover))
    if length != max(len(times), len(temperatures), len(precipitation), len(cloud_cover)):
        logger.warning("Hourly arrays differ in length, truncating to %d", length)

    points: list[HourlyDataPoint] = []
    for i in range(length):
        if times[i] is None or temperatures[i] is None:
            continue
        timestamp = parse_timestamp(times[i])
        if timestamp is None:
            logger.warning("Dropping sample with unparsable timestamp: %r", times[i])
            continue
        temperature = _to_float(temperatures[i])
        if temperature is None:
            logger.warning("Dropping sample at %s with invalid temperature", times[i])
            continue

        precip = _to_float(precipitation[i]) or 0.0
        cloud = _to_float(cloud_cover[i]) or 0.0
        points.append(
            HourlyDataPoint(
                timestamp=timestamp,
                temperature_c=temperature,
                precipitation_mm=max(0.0, precip),
                cloud_cover_pct=min(100, max(0, int(round(cloud)))),
            )
        )

    _check_hourly_spacing(points)

    logger.debug("Parsed %d hourly data points", len(points))
    return WeatherSeries(
        timezone=str(payload["timezone"]),
        latitude=latitude,
        longitude=longitude,
        fetched_at=fetched_at,
        points=tuple(points),
    )


def to_payload(series: WeatherSeries) -> dict[str, Any]:
    """Serialize a series into the cached payload shape accepted by parse_series."""
    return {
        "timezone": series.timezone,
        "latitude": series.latitude,
        "longitude": series.longitude,
        "fetchedAt": format_timestamp(series.fetched_at),
        "hourly": {
            "time": [format_timestamp(p.timestamp) for p in series.points],
            "temperature_2m": [p.temperature_c for p in series.points],
            "precipitation": [p.precipitation_mm for p in series.points],
            "cloud_cover": [p.cloud_cover_pct for p in series.points],
        },
    }


def _check_hourly_spacing(points: list[HourlyDataPoint]) -> None:
    for prev, cur in zip(points, points[1:]):
        delta = cur.timestamp - prev.timestamp
        if delta <= timedelta(0):
            raise ParseError(
                f"Timestamps not strictly increasing at {cur.timestamp.isoformat()}"
            )
        if delta != HOURLY_SPACING:
            raise ParseError(
                f"Gap in hourly series between {prev.timestamp.isoformat()} "
                f"and {cur.timestamp.isoformat()}"
            )


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result
