"""Label formatters for chart text."""

from datetime import datetime
from zoneinfo import ZoneInfo

# Regions whose everyday temperature unit is Fahrenheit.
FAHRENHEIT_REGIONS = frozenset({"US", "LR", "MM", "BS", "BZ", "KY", "PW", "FM", "MH"})


def format_temperature(celsius: float, fahrenheit: bool) -> str:
    """Whole-degree label, truncated toward zero."""
    if fahrenheit:
        return str(int(celsius * 9 / 5 + 32))
    return str(int(celsius))


def format_hour(when: datetime, use_24_hour: bool, tz: str = "UTC") -> str:
    """Hour-only label: '15' or '3 PM'."""
    hour = when.astimezone(ZoneInfo(tz)).hour
    if use_24_hour:
        return str(hour)
    hour12 = 12 if hour % 12 == 0 else hour % 12
    meridiem = "AM" if hour < 12 else "PM"
    return f"{hour12} {meridiem}"


def locale_uses_fahrenheit(locale: str) -> bool:
    """True for locales like 'en_US' or 'en-LR'."""
    region = locale.replace("-", "_").split(".")[0].split("_")
    return len(region) > 1 and region[1].upper() in FAHRENHEIT_REGIONS
