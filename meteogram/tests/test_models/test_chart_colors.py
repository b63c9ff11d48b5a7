"""Tests for chart color models."""

import pytest

from meteogram.config.defaults import DARK_SCHEME, LIGHT_SCHEME
from meteogram.models.chart import ChartElement, Color, RenderRequest, VectorChart


class TestColor:
    def test_hex_drops_alpha(self):
        assert Color(0xFF, 0x6B, 0x6B, 0x40).hex == "#ff6b6b"

    def test_from_hex_rgb_is_opaque(self):
        assert Color.from_hex("#4ECDC4") == Color(0x4E, 0xCD, 0xC4, 0xFF)

    def test_from_hex_argb(self):
        assert Color.from_hex("#80112233") == Color(0x11, 0x22, 0x33, 0x80)

    def test_from_argb(self):
        assert Color.from_argb(0x40FF6B6B) == Color(0xFF, 0x6B, 0x6B, 0x40)

    @pytest.mark.parametrize("value", ["", "#123", "#1234567", "#gggggg"])
    def test_from_hex_invalid(self, value):
        with pytest.raises(ValueError):
            Color.from_hex(value)

    def test_opacity(self):
        assert Color(0, 0, 0, 0).opacity == 0.0
        assert Color(0, 0, 0).opacity == 1.0


class TestDynamicColors:
    def test_overlay(self):
        line = Color(0x12, 0x34, 0x56)
        label = Color(0xAB, 0xCD, 0xEF)
        scheme = LIGHT_SCHEME.with_dynamic_colors(line, label)

        assert scheme.temperature_line == line
        assert scheme.time_label == label
        assert scheme.temperature_gradient_start == Color(0x12, 0x34, 0x56, 0x40)
        assert scheme.temperature_gradient_end == Color(0x12, 0x34, 0x56, 0x00)

    def test_dark_keeps_its_gradient_alpha(self):
        scheme = DARK_SCHEME.with_dynamic_colors(Color(1, 2, 3), Color(4, 5, 6))
        assert scheme.temperature_gradient_start.a == 0x28

    def test_other_colors_untouched(self):
        scheme = LIGHT_SCHEME.with_dynamic_colors(Color(1, 2, 3), Color(4, 5, 6))
        assert scheme.precipitation_bar == LIGHT_SCHEME.precipitation_bar
        assert scheme.daylight_bar == LIGHT_SCHEME.daylight_bar
        assert scheme.now_indicator == LIGHT_SCHEME.now_indicator
        assert scheme.background == LIGHT_SCHEME.background


class TestRenderRequest:
    @pytest.mark.parametrize("width,height", [(0, 500), (1000, 0), (-1, 10)])
    def test_rejects_non_positive(self, width, height):
        with pytest.raises(ValueError):
            RenderRequest(width, height)

    def test_defaults(self):
        request = RenderRequest(1000, 500)
        assert not request.use_fahrenheit
        assert request.use_24_hour_clock
        assert request.past_fade_enabled


def test_vector_chart_count():
    chart = VectorChart(1, 1, '<g><line class="grid-line"/><line class="grid-line"/></g>')
    assert chart.count(ChartElement.GRID_LINE) == 2
    assert chart.count(ChartElement.NOW_INDICATOR) == 0
