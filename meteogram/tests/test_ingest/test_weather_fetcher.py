"""Tests for the weather fetcher."""

import json
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from meteogram.ingest.series_parser import ParseError, parse_series
from meteogram.ingest.weather_fetcher import WeatherFetcher, normalize_time, transform_response

NOW = datetime(2026, 1, 14, 6, 20, tzinfo=UTC)


@pytest.fixture
def berlin_forecast(fixtures_dir: Path) -> dict:
    with open(fixtures_dir / "openmeteo_berlin.json") as f:
        return json.load(f)


class TestNormalizeTime:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2026-01-01T00:00", "2026-01-01T00:00:00.000Z"),
            ("2026-01-01T00:00:00", "2026-01-01T00:00:00.000Z"),
            ("2026-01-01T00:00:00.000", "2026-01-01T00:00:00.000Z"),
            ("2026-01-01T00:00:00.000Z", "2026-01-01T00:00:00.000Z"),
        ],
    )
    def test_formats(self, raw: str, expected: str):
        assert normalize_time(raw) == expected

    def test_non_string_passes_through(self):
        assert normalize_time(None) is None


class TestTransformResponse:
    def test_adds_fetched_at(self, berlin_forecast: dict):
        payload = transform_response(berlin_forecast, NOW)
        assert payload["fetchedAt"] == "2026-01-14T06:20:00.000Z"
        assert payload["timezone"] == "UTC"
        assert payload["hourly"]["time"][0] == "2026-01-14T00:00:00.000Z"

    def test_drops_unused_fields(self, berlin_forecast: dict):
        payload = transform_response(berlin_forecast, NOW)
        assert "hourly_units" not in payload
        assert set(payload["hourly"]) == {
            "time", "temperature_2m", "precipitation", "cloud_cover",
        }

    def test_missing_hourly(self):
        with pytest.raises(ParseError):
            transform_response({"latitude": 1.0, "longitude": 2.0}, NOW)

    def test_missing_hourly_field(self, berlin_forecast: dict):
        del berlin_forecast["hourly"]["cloud_cover"]
        with pytest.raises(ParseError, match="cloud_cover"):
            transform_response(berlin_forecast, NOW)

    def test_missing_coordinates(self, berlin_forecast: dict):
        del berlin_forecast["latitude"]
        with pytest.raises(ParseError, match="coordinates"):
            transform_response(berlin_forecast, NOW)


class TestWeatherFetcher:
    def test_fetch_returns_series_and_payload(self, berlin_forecast: dict):
        client = MagicMock()
        client.get_forecast.return_value = berlin_forecast
        fetcher = WeatherFetcher(client)

        series, payload = fetcher.fetch(52.52, 13.41, NOW)

        client.get_forecast.assert_called_once_with(52.52, 13.41)
        assert len(series.points) == 54
        assert series.fetched_at == NOW
        assert payload["fetchedAt"] == "2026-01-14T06:20:00.000Z"

    def test_http_errors_propagate(self):
        client = MagicMock()
        client.get_forecast.side_effect = httpx.ConnectError("down")
        with pytest.raises(httpx.HTTPError):
            WeatherFetcher(client).fetch(52.52, 13.41, NOW)

    def test_bad_response_raises_parse_error(self):
        client = MagicMock()
        client.get_forecast.return_value = {"error": True, "reason": "nope"}
        with pytest.raises(ParseError):
            WeatherFetcher(client).fetch(52.52, 13.41, NOW)

    def test_dropped_entries_not_cached(self, berlin_forecast: dict):
        berlin_forecast["hourly"]["temperature_2m"][-1] = None
        client = MagicMock()
        client.get_forecast.return_value = berlin_forecast

        series, payload = WeatherFetcher(client).fetch(52.52, 13.41, NOW)

        assert len(series.points) == 53
        assert len(payload["hourly"]["time"]) == 53
        assert parse_series(payload) == series
