"""Default chart palettes keyed by theme name."""

from meteogram.models.chart import Color, ColorScheme

LIGHT_SCHEME = ColorScheme(
    temperature_line=Color(0xFF, 0x6B, 0x6B),
    temperature_gradient_start=Color(0xFF, 0x6B, 0x6B, 0x40),
    temperature_gradient_end=Color(0xFF, 0x6B, 0x6B, 0x00),
    precipitation_bar=Color(0x4E, 0xCD, 0xC4),
    daylight_bar=Color(0xFF, 0x8F, 0x00),  # dark amber, visible on white
    now_indicator=Color(0x4A, 0x55, 0x68),
    time_label=Color(0x4A, 0x55, 0x68),
    background=Color(0xFF, 0xFF, 0xFF),
    primary_text=Color(0x2D, 0x34, 0x36),
)

DARK_SCHEME = ColorScheme(
    temperature_line=Color(0xFF, 0x76, 0x75),
    temperature_gradient_start=Color(0xFF, 0x76, 0x75, 0x28),
    temperature_gradient_end=Color(0xFF, 0x76, 0x75, 0x00),
    precipitation_bar=Color(0x00, 0xCE, 0xC9),
    daylight_bar=Color(0xFF, 0xD5, 0x4F),
    now_indicator=Color(0xFF, 0xFF, 0xFF),
    time_label=Color(0xE0, 0xE0, 0xE0),
    background=Color(0x2D, 0x2D, 0x2D),
    primary_text=Color(0xFF, 0xFF, 0xFF),
)

DEFAULT_SCHEMES: dict[str, ColorScheme] = {
    "light": LIGHT_SCHEME,
    "dark": DARK_SCHEME,
}
