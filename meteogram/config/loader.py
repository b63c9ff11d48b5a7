"""YAML config loader with hashing and runtime get/set."""

import hashlib
import json
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from meteogram.config.defaults import DEFAULT_SCHEMES
from meteogram.config.schema import MeteogramConfig


def load_config(path: str | Path) -> MeteogramConfig:
    """Load and validate config from a YAML file.

    An empty file yields the defaults. Unknown theme names and timezones are
    rejected.
    """
    path = Path(path)
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return validate_config(MeteogramConfig(**raw))


def validate_config(config: MeteogramConfig) -> MeteogramConfig:
    """Checks the schema cannot express: known theme names and a real timezone."""
    unknown = [t for t in config.display.themes if t not in DEFAULT_SCHEMES]
    if unknown:
        raise ValueError(f"Unknown themes in display.themes: {', '.join(unknown)}")
    try:
        ZoneInfo(config.display.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {config.display.timezone}") from e
    return config


def config_hash(config: MeteogramConfig) -> str:
    """Compute a deterministic SHA256 hash of the config."""
    data = config.model_dump_json(indent=None)
    return hashlib.sha256(data.encode()).hexdigest()[:16]


def get_config_value(config: MeteogramConfig, dotted_key: str) -> Any:
    """Get a config value by dotted key path. E.g. 'refresh.slot_minutes'."""
    parts = dotted_key.split(".")
    obj: Any = config
    for part in parts:
        if isinstance(obj, list):
            obj = obj[int(part)]
        elif hasattr(obj, part):
            obj = getattr(obj, part)
        elif isinstance(obj, dict):
            obj = obj[part]
        else:
            raise KeyError(f"Config key not found: {dotted_key}")
    return obj


def set_config_value(config: MeteogramConfig, dotted_key: str, value: Any) -> MeteogramConfig:
    """Set a config value by dotted key path and re-validate.

    Returns a new MeteogramConfig instance.
    """
    data = json.loads(config.model_dump_json())
    parts = dotted_key.split(".")
    target = data
    for part in parts[:-1]:
        if target.get(part) is None:
            raise KeyError(f"Config key not found: {dotted_key}")
        target = target[part]
    old_value = target.get(parts[-1])
    if isinstance(old_value, bool) and isinstance(value, str):
        value = value.lower() in ("1", "true", "yes", "on")
    elif isinstance(old_value, int) and isinstance(value, str):
        value = int(value)
    elif isinstance(old_value, float) and isinstance(value, str):
        value = float(value)
    target[parts[-1]] = value
    return validate_config(MeteogramConfig(**data))


def save_config(config: MeteogramConfig, path: str | Path) -> None:
    """Write config back to YAML, omitting unset defaults."""
    data = json.loads(config.model_dump_json(exclude_defaults=True))
    with open(path, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)
