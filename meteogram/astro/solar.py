"""Solar position and daylight intensity approximations.

Accuracy is tuned for daylight bars on a chart, not for astronomy: the
declination uses a single sine term and the hour angle ignores the equation
of time.
"""

import math
from datetime import UTC, datetime

from meteogram.models.weather import HourlyDataPoint

TWILIGHT_ELEVATION_DEG = -6.0
FULL_DAYLIGHT_LUX = 130000.0

_AIR_MASS_X = 753.66156


def solar_elevation(latitude: float, longitude: float, when: datetime) -> float:
    """Sun elevation above the horizon in degrees (negative below).

    Args:
        latitude: Degrees, -90..90.
        longitude: Degrees, east positive.
        when: Aware datetime; converted to UTC.
    """
    utc = when.astimezone(UTC)
    day_of_year = utc.timetuple().tm_yday
    utc_hour = utc.hour + utc.minute / 60.0

    declination = 23.45 * math.sin(2 * math.pi / 365 * (284 + day_of_year))
    solar_hour = utc_hour + longitude / 15.0
    hour_angle = 15.0 * (solar_hour - 12)

    lat_rad = math.radians(latitude)
    dec_rad = math.radians(declination)
    ha_rad = math.radians(hour_angle)

    sin_elevation = (
        math.sin(lat_rad) * math.sin(dec_rad)
        + math.cos(lat_rad) * math.cos(dec_rad) * math.cos(ha_rad)
    )
    return math.degrees(math.asin(min(1.0, max(-1.0, sin_elevation))))


def clear_sky_illuminance(elevation: float) -> float:
    """Ground illuminance in lux under a cloudless sky (0 to ~133000)."""
    if math.isnan(elevation) or elevation <= TWILIGHT_ELEVATION_DEG:
        return 0.0

    elev_rad = math.radians(elevation)
    u = math.sin(elev_rad)

    s = math.asin(min(1.0, max(-1.0, _AIR_MASS_X * math.cos(elev_rad) / (_AIR_MASS_X + 1))))
    m = _AIR_MASS_X * (math.cos(s) - u) + math.cos(s)

    factor = math.exp(-0.2 * m) * u + 0.0289 * math.exp(-0.042 * m) * (
        1 + (elevation + 90) * u / 57.29577951
    )
    return 133775 * max(0.0, factor)


def daylight_intensity(point: HourlyDataPoint, latitude: float, longitude: float) -> float:
    """Perceived daylight for one hour, 0.0..1.0.

    Clear-sky potential is divided by 10^(cloud/100) and by
    1 + 0.5 * precip^0.6, then square-rooted.
    """
    lux = clear_sky_illuminance(solar_elevation(latitude, longitude, point.timestamp))
    if lux <= 0:
        return 0.0

    potential = min(1.0, max(0.0, lux / FULL_DAYLIGHT_LUX))
    cloud_divisor = 10.0 ** (point.cloud_cover_pct / 100.0)
    precipitation = point.precipitation_mm
    if math.isnan(precipitation) or precipitation < 0:
        precipitation = 0.0
    precip_divisor = 1 + 0.5 * precipitation**0.6

    intensity = math.sqrt(potential / cloud_divisor / precip_divisor)
    return 0.0 if math.isnan(intensity) else intensity
