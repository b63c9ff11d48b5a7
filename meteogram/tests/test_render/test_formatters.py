"""Tests for chart label formatters."""

from datetime import UTC, datetime

import pytest

from meteogram.render.formatters import format_hour, format_temperature, locale_uses_fahrenheit


class TestFormatTemperature:
    @pytest.mark.parametrize("celsius,expected", [(20.0, "68"), (25.0, "77"), (30.0, "86")])
    def test_fahrenheit(self, celsius, expected):
        assert format_temperature(celsius, True) == expected

    def test_celsius_truncates(self):
        assert format_temperature(12.9, False) == "12"

    def test_negative_truncates_toward_zero(self):
        assert format_temperature(-3.7, False) == "-3"

    def test_fahrenheit_truncates(self):
        # 21.1 C -> 69.98 F
        assert format_temperature(21.1, True) == "69"


class TestFormatHour:
    def test_24_hour(self):
        assert format_hour(datetime(2026, 1, 15, 15, tzinfo=UTC), True) == "15"
        assert format_hour(datetime(2026, 1, 15, 0, tzinfo=UTC), True) == "0"

    @pytest.mark.parametrize(
        "hour,expected",
        [(0, "12 AM"), (9, "9 AM"), (12, "12 PM"), (15, "3 PM"), (23, "11 PM")],
    )
    def test_12_hour(self, hour, expected):
        assert format_hour(datetime(2026, 1, 15, hour, tzinfo=UTC), False) == expected

    def test_converts_to_timezone(self):
        when = datetime(2026, 7, 1, 12, tzinfo=UTC)
        assert format_hour(when, True, "Europe/Berlin") == "14"
        assert format_hour(when, True, "America/New_York") == "8"


class TestLocale:
    @pytest.mark.parametrize("locale", ["en_US", "en-US", "en_US.UTF-8", "en_LR"])
    def test_fahrenheit_locales(self, locale):
        assert locale_uses_fahrenheit(locale)

    @pytest.mark.parametrize("locale", ["de_DE", "en_GB", "en", "C"])
    def test_celsius_locales(self, locale):
        assert not locale_uses_fahrenheit(locale)
