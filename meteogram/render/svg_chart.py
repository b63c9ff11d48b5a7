"""Meteogram chart geometry: hourly weather window -> SVG document.

Output is a pure function of its inputs. Positions are truncated to whole
pixels so identical inputs produce byte-identical documents.
"""

import math

from meteogram.astro.solar import daylight_intensity
from meteogram.models.chart import ChartElement, ColorScheme, RenderRequest, VectorChart
from meteogram.models.weather import DisplayWindow, HourlyDataPoint
from meteogram.render.formatters import format_hour, format_temperature


SVG_NS = "http://www.w3.org/2000/svg"

# Layout ratios
TIME_FONT_SIZE_RATIO = 0.04
TEMP_FONT_SIZE_RATIO = 0.045
BAR_WIDTH_RATIO = 0.7
CHART_HEIGHT_RATIO = 0.95
TEMP_RANGE_PADDING_RATIO = 0.10
MIN_TEMP_RANGE = 1.0
CURVE_CONTROL_RATIO = 0.35

DAYLIGHT_BAR_OPACITY = 0.5
PRECIPITATION_BAR_OPACITY = 0.5
BAR_SHADOW_OPACITY = 0.4
BAR_SHADOW_OFFSET = 3
LINE_SHADOW_OFFSET = 3
LABEL_SHADOW_OFFSET = 4
GRID_OPACITY = 0.3

LABEL_INTERVAL = 12
LABEL_TAIL_MARGIN = 8
PRECIP_FULL_SCALE_MM = 10.0


class ChartGeometryEngine:
    """Builds meteogram SVG documents. Stateless and safe to share."""

    def render(
        self,
        window: DisplayWindow,
        now_index: int,
        colors: ColorScheme,
        request: RenderRequest,
    ) -> VectorChart:
        width = request.width_px
        height = request.height_px
        points = window.points

        if not points:
            return VectorChart(width, height, f"{_svg_open(width, height)}</svg>")

        n = len(points)
        now_index = max(0, min(now_index, n - 1))
        time_font = width * TIME_FONT_SIZE_RATIO
        chart_height = (height - time_font * 1.5) * CHART_HEIGHT_RATIO
        now_fraction = (now_index + 1) / n

        svg: list[str] = [_svg_open(width, height)]

        svg.append("<defs>")
        _write_defs(svg, colors, now_fraction, request.past_fade_enabled)
        svg.append("</defs>")

        # Bars, curve and grid share the fade mask; labels never do.
        svg.append('<g mask="url(#pastFadeMask)">' if request.past_fade_enabled else "<g>")
        _write_daylight_bars(svg, window, width, chart_height)
        _write_precipitation_bars(svg, points, width, chart_height)
        _write_temperature_curve(svg, points, colors, width, chart_height)

        now_x = int(_x_at(now_index, n, width))
        svg.append(
            f'<line class="{ChartElement.NOW_INDICATOR}" x1="{now_x}" y1="0" x2="{now_x}" '
            f'y2="{int(chart_height)}" stroke="{colors.now_indicator.hex}" stroke-width="3"/>'
        )

        for i in range(now_index + LABEL_INTERVAL, n - LABEL_TAIL_MARGIN, LABEL_INTERVAL):
            x = int(_x_at(i, n, width))
            svg.append(
                f'<line class="{ChartElement.GRID_LINE}" x1="{x}" y1="0" x2="{x}" '
                f'y2="{int(chart_height)}" stroke="{colors.time_label.hex}" '
                f'stroke-width="1" opacity="{GRID_OPACITY}"/>'
            )
        svg.append("</g>")

        _write_temperature_labels(svg, points, colors, request, chart_height, now_fraction)
        _write_time_labels(svg, points, now_index, colors, request, chart_height)

        svg.append("</svg>")
        return VectorChart(width, height, "".join(svg))


def _svg_open(width: int, height: int) -> str:
    return (
        f'<svg xmlns="{SVG_NS}" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}">'
    )


def _x_at(index: int, count: int, width: float) -> float:
    if count < 2:
        return 0.0
    return index / (count - 1) * width


def _temperature_scale(points: tuple[HourlyDataPoint, ...]) -> tuple[float, float, float]:
    """(min, range, padding) shared by the curve and its labels."""
    temps = [p.temperature_c for p in points]
    min_temp = min(temps)
    temp_range = max(max(temps) - min_temp, MIN_TEMP_RANGE)
    return min_temp, temp_range, temp_range * TEMP_RANGE_PADDING_RATIO


def _temperature_y(temp: float, scale: tuple[float, float, float], chart_height: float) -> float:
    min_temp, temp_range, padding = scale
    normalized = (temp - min_temp + padding) / (temp_range + 2 * padding)
    return chart_height * (1 - normalized)


def _write_defs(
    svg: list[str], colors: ColorScheme, now_fraction: float, past_fade: bool
) -> None:
    line = colors.temperature_line.hex
    svg.append('<linearGradient id="tempGradient" x1="0" y1="0" x2="0" y2="1">')
    svg.append(
        f'<stop offset="0%" stop-color="{line}" '
        f'stop-opacity="{colors.temperature_gradient_start.opacity:.2f}"/>'
    )
    svg.append(
        f'<stop offset="100%" stop-color="{line}" '
        f'stop-opacity="{colors.temperature_gradient_end.opacity:.2f}"/>'
    )
    svg.append("</linearGradient>")

    # Bars hang from the top edge, so the baseline is the top of the gradient.
    daylight = colors.daylight_bar.hex
    svg.append('<linearGradient id="daylightGradient" x1="0" y1="0" x2="0" y2="1">')
    svg.append(f'<stop offset="0%" stop-color="{daylight}" stop-opacity="0.7"/>')
    svg.append(f'<stop offset="100%" stop-color="{daylight}" stop-opacity="0.3"/>')
    svg.append("</linearGradient>")

    precip = colors.precipitation_bar.hex
    svg.append('<linearGradient id="precipGradient" x1="0" y1="0" x2="0" y2="1">')
    svg.append(f'<stop offset="0%" stop-color="{precip}" stop-opacity="0.3"/>')
    svg.append(f'<stop offset="100%" stop-color="{precip}" stop-opacity="0.7"/>')
    svg.append("</linearGradient>")

    if past_fade:
        fade_mid = int(now_fraction * 0.75 * 100)
        fade_full = int(now_fraction * 100)
        svg.append('<linearGradient id="pastFadeGradient" x1="0" y1="0" x2="1" y2="0">')
        svg.append('<stop offset="0%" stop-color="white" stop-opacity="0.15"/>')
        svg.append(f'<stop offset="{fade_mid}%" stop-color="white" stop-opacity="0.35"/>')
        svg.append(f'<stop offset="{fade_full}%" stop-color="white" stop-opacity="1"/>')
        svg.append('<stop offset="100%" stop-color="white" stop-opacity="1"/>')
        svg.append("</linearGradient>")
        svg.append(
            '<mask id="pastFadeMask"><rect width="100%" height="100%" '
            'fill="url(#pastFadeGradient)"/></mask>'
        )


def _write_bars(
    svg: list[str],
    heights: list[float],
    width: float,
    fill: str,
    bar_kind: ChartElement,
    shadow_kind: ChartElement,
    opacity: float,
) -> None:
    slot = width / len(heights)
    bar_width = int(slot * BAR_WIDTH_RATIO)
    bars = [
        (i * slot + (slot - slot * BAR_WIDTH_RATIO) / 2, h)
        for i, h in enumerate(heights)
        if h > 0
    ]
    if not bars:
        return

    svg.append(f'<g opacity="{BAR_SHADOW_OPACITY}">')
    for x, h in bars:
        svg.append(
            f'<rect class="{shadow_kind}" x="{int(x + BAR_SHADOW_OFFSET)}" '
            f'y="{BAR_SHADOW_OFFSET}" width="{bar_width}" height="{int(h)}" '
            f'fill="#000000" rx="2"/>'
        )
    svg.append("</g>")

    svg.append(f'<g opacity="{opacity}">')
    for x, h in bars:
        svg.append(
            f'<rect class="{bar_kind}" x="{int(x)}" y="0" width="{bar_width}" '
            f'height="{int(h)}" fill="{fill}" rx="2"/>'
        )
    svg.append("</g>")


def _write_daylight_bars(
    svg: list[str], window: DisplayWindow, width: float, chart_height: float
) -> None:
    heights = [
        daylight_intensity(p, window.latitude, window.longitude) * chart_height
        for p in window.points
    ]
    _write_bars(
        svg,
        heights,
        width,
        "url(#daylightGradient)",
        ChartElement.DAYLIGHT_BAR,
        ChartElement.DAYLIGHT_SHADOW,
        DAYLIGHT_BAR_OPACITY,
    )


def _write_precipitation_bars(
    svg: list[str], points: tuple[HourlyDataPoint, ...], width: float, chart_height: float
) -> None:
    if max(p.precipitation_mm for p in points) <= 0:
        return
    heights = [
        math.sqrt(min(1.0, max(0.0, p.precipitation_mm / PRECIP_FULL_SCALE_MM))) * chart_height
        for p in points
    ]
    _write_bars(
        svg,
        heights,
        width,
        "url(#precipGradient)",
        ChartElement.PRECIP_BAR,
        ChartElement.PRECIP_SHADOW,
        PRECIPITATION_BAR_OPACITY,
    )


def _write_temperature_curve(
    svg: list[str],
    points: tuple[HourlyDataPoint, ...],
    colors: ColorScheme,
    width: float,
    chart_height: float,
) -> None:
    scale = _temperature_scale(points)
    n = len(points)
    coords = [
        (_x_at(i, n, width), _temperature_y(p.temperature_c, scale, chart_height))
        for i, p in enumerate(points)
    ]

    path = [f"M {int(coords[0][0])} {int(coords[0][1])}"]
    for (x0, y0), (x1, y1) in zip(coords, coords[1:]):
        dx = x1 - x0
        cp1x = x0 + dx * CURVE_CONTROL_RATIO
        cp2x = x1 - dx * CURVE_CONTROL_RATIO
        path.append(
            f" C {int(cp1x)} {int(y0)} {int(cp2x)} {int(y1)} {int(x1)} {int(y1)}"
        )
    line = "".join(path)
    area = f"{line} L {int(width)} {int(chart_height)} L 0 {int(chart_height)} Z"

    svg.append(
        f'<path class="{ChartElement.TEMP_AREA}" d="{area}" '
        f'fill="url(#tempGradient)" stroke="none"/>'
    )
    svg.append(
        f'<path class="{ChartElement.TEMP_SHADOW}" d="{line}" fill="none" stroke="#000000" '
        f'stroke-width="4" stroke-opacity="0.5" stroke-linecap="round" '
        f'stroke-linejoin="round" transform="translate({LINE_SHADOW_OFFSET},{LINE_SHADOW_OFFSET})"/>'
    )
    svg.append(
        f'<path class="{ChartElement.TEMP_LINE}" d="{line}" fill="none" '
        f'stroke="{colors.temperature_line.hex}" stroke-width="3" '
        f'stroke-linecap="round" stroke-linejoin="round"/>'
    )


def _write_label(
    svg: list[str],
    text: str,
    x: int,
    y: int,
    style: str,
    fill: str,
    kind: ChartElement,
    shadow_kind: ChartElement,
) -> None:
    svg.append(
        f'<text class="{shadow_kind}" x="{x + LABEL_SHADOW_OFFSET}" '
        f'y="{y + LABEL_SHADOW_OFFSET}" fill="#000000" fill-opacity="0.6" {style}>{text}</text>'
    )
    svg.append(f'<text class="{kind}" x="{x}" y="{y}" fill="{fill}" {style}>{text}</text>')


def _write_temperature_labels(
    svg: list[str],
    points: tuple[HourlyDataPoint, ...],
    colors: ColorScheme,
    request: RenderRequest,
    chart_height: float,
    now_fraction: float,
) -> None:
    scale = _temperature_scale(points)
    temps = [p.temperature_c for p in points]
    max_temp, min_temp = max(temps), min(temps)
    mid_temp = (min_temp + max_temp) / 2

    font_size = int(request.width_px * TEMP_FONT_SIZE_RATIO)
    style = (
        f'font-size="{font_size}" font-weight="bold" font-family="sans-serif" '
        f'text-anchor="middle" dominant-baseline="middle"'
    )
    x = int(now_fraction / 2.5 * request.width_px)
    y_offset = font_size * 0.4

    for temp in (max_temp, mid_temp, min_temp):
        y = int(_temperature_y(temp, scale, chart_height) + y_offset)
        _write_label(
            svg,
            format_temperature(temp, request.use_fahrenheit),
            x,
            y,
            style,
            colors.temperature_line.hex,
            ChartElement.TEMP_LABEL,
            ChartElement.TEMP_LABEL_SHADOW,
        )


def _write_time_labels(
    svg: list[str],
    points: tuple[HourlyDataPoint, ...],
    now_index: int,
    colors: ColorScheme,
    request: RenderRequest,
    chart_height: float,
) -> None:
    n = len(points)
    font_size = int(request.width_px * TIME_FONT_SIZE_RATIO)
    label_y = int(chart_height + (request.height_px - chart_height) * 0.6)
    style = (
        f'font-size="{font_size}" font-weight="600" font-family="sans-serif" '
        f'text-anchor="middle" dominant-baseline="middle"'
    )

    for i in range(now_index, n - LABEL_TAIL_MARGIN, LABEL_INTERVAL):
        text = format_hour(points[i].timestamp, request.use_24_hour_clock, request.timezone)
        _write_label(
            svg,
            text,
            int(_x_at(i, n, request.width_px)),
            label_y,
            style,
            colors.time_label.hex,
            ChartElement.TIME_LABEL,
            ChartElement.TIME_LABEL_SHADOW,
        )
