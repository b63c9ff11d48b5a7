"""Persisted accent colors per theme, applied over the preset palettes."""

import hashlib
import json
import logging

from meteogram.config.defaults import DEFAULT_SCHEMES
from meteogram.models.chart import Color, ColorScheme
from meteogram.storage.refresh_store import KeyValueStore

logger = logging.getLogger(__name__)

THEME_PREFIX = "theme."


def _key(theme: str) -> str:
    return f"{THEME_PREFIX}{theme}.accent"


def colors_hash(temperature_line: Color, time_label: Color) -> str:
    data = f"{temperature_line.hex}:{temperature_line.a}|{time_label.hex}:{time_label.a}"
    return hashlib.sha256(data.encode()).hexdigest()[:16]


def save_accent_colors(
    kv: KeyValueStore, theme: str, temperature_line: Color, time_label: Color
) -> bool:
    """Store accent colors for a theme. Returns True if they changed."""
    if theme not in DEFAULT_SCHEMES:
        raise ValueError(f"Unknown theme: {theme}")
    new_hash = colors_hash(temperature_line, time_label)
    current = _load(kv, theme)
    if current is not None and current.get("hash") == new_hash:
        return False
    kv.set(
        _key(theme),
        json.dumps({
            "temperature_line": _argb(temperature_line),
            "time_label": _argb(time_label),
            "hash": new_hash,
        }),
    )
    logger.info("Accent colors for %s theme changed (%s)", theme, new_hash)
    return True


def clear_accent_colors(kv: KeyValueStore, theme: str) -> None:
    kv.delete(_key(theme))


def load_color_scheme(kv: KeyValueStore, theme: str) -> ColorScheme:
    """Preset palette for theme, with stored accent colors applied if any."""
    base = DEFAULT_SCHEMES[theme]
    stored = _load(kv, theme)
    if stored is None:
        return base
    try:
        line = Color.from_argb(int(stored["temperature_line"]))
        label = Color.from_argb(int(stored["time_label"]))
    except (KeyError, TypeError, ValueError):
        logger.warning("Ignoring malformed accent colors for %s theme", theme)
        return base
    return base.with_dynamic_colors(line, label)


def _load(kv: KeyValueStore, theme: str) -> dict | None:
    raw = kv.get(_key(theme))
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def _argb(color: Color) -> int:
    return (color.a << 24) | (color.r << 16) | (color.g << 8) | color.b
