"""Chart colors, render requests and rendered chart documents."""

from dataclasses import dataclass, replace
from enum import StrEnum


class ChartElement(StrEnum):
    DAYLIGHT_SHADOW = "daylight-shadow"
    DAYLIGHT_BAR = "daylight-bar"
    PRECIP_SHADOW = "precip-shadow"
    PRECIP_BAR = "precip-bar"
    TEMP_AREA = "temp-area"
    TEMP_SHADOW = "temp-shadow"
    TEMP_LINE = "temp-line"
    NOW_INDICATOR = "now-indicator"
    GRID_LINE = "grid-line"
    TEMP_LABEL = "temp-label"
    TEMP_LABEL_SHADOW = "temp-label-shadow"
    TIME_LABEL = "time-label"
    TIME_LABEL_SHADOW = "time-label-shadow"


@dataclass(frozen=True)
class Color:
    r: int
    g: int
    b: int
    a: int = 255

    @property
    def hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    @property
    def opacity(self) -> float:
        return self.a / 255.0

    @classmethod
    def from_argb(cls, argb: int) -> "Color":
        """Build from a packed 0xAARRGGBB integer."""
        return cls(
            r=(argb >> 16) & 0xFF,
            g=(argb >> 8) & 0xFF,
            b=argb & 0xFF,
            a=(argb >> 24) & 0xFF,
        )

    @classmethod
    def from_hex(cls, value: str) -> "Color":
        """Parse '#rrggbb' or '#aarrggbb'."""
        digits = value.strip().removeprefix("#")
        if len(digits) == 6:
            return cls.from_argb(0xFF000000 | int(digits, 16))
        if len(digits) == 8:
            return cls.from_argb(int(digits, 16))
        raise ValueError(f"Invalid color: {value!r}")


@dataclass(frozen=True)
class ColorScheme:
    temperature_line: Color
    temperature_gradient_start: Color
    temperature_gradient_end: Color
    precipitation_bar: Color
    daylight_bar: Color
    now_indicator: Color
    time_label: Color
    background: Color
    primary_text: Color

    def with_dynamic_colors(self, temperature_line: Color, time_label: Color) -> "ColorScheme":
        """Overlay host accent colors on the line and time labels.

        Gradient ends take the new line RGB; the start keeps its own alpha and
        the end stays fully transparent.
        """
        return replace(
            self,
            temperature_line=temperature_line,
            temperature_gradient_start=Color(
                temperature_line.r,
                temperature_line.g,
                temperature_line.b,
                self.temperature_gradient_start.a,
            ),
            temperature_gradient_end=Color(
                temperature_line.r, temperature_line.g, temperature_line.b, 0x00
            ),
            time_label=time_label,
        )


@dataclass(frozen=True)
class RenderRequest:
    width_px: int
    height_px: int
    locale: str = "en_US"
    use_fahrenheit: bool = False
    use_24_hour_clock: bool = True
    past_fade_enabled: bool = True
    timezone: str = "UTC"

    def __post_init__(self) -> None:
        if self.width_px <= 0 or self.height_px <= 0:
            raise ValueError(
                f"Render dimensions must be positive, got {self.width_px}x{self.height_px}"
            )


@dataclass(frozen=True)
class VectorChart:
    width: int
    height: int
    svg: str

    def count(self, kind: ChartElement) -> int:
        """Number of elements of the given kind in the document."""
        return self.svg.count(f'class="{kind.value}"')
