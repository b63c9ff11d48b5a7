"""Tests for persisted theme accent colors."""

import pytest

from meteogram.config.defaults import DARK_SCHEME, LIGHT_SCHEME
from meteogram.models.chart import Color
from meteogram.storage import theme_repo

LINE = Color(0x12, 0x34, 0x56)
LABEL = Color(0xAB, 0xCD, 0xEF, 0x80)


def test_preset_when_nothing_stored(kv):
    assert theme_repo.load_color_scheme(kv, "light") == LIGHT_SCHEME
    assert theme_repo.load_color_scheme(kv, "dark") == DARK_SCHEME


def test_save_and_load(kv):
    assert theme_repo.save_accent_colors(kv, "light", LINE, LABEL) is True
    scheme = theme_repo.load_color_scheme(kv, "light")
    assert scheme == LIGHT_SCHEME.with_dynamic_colors(LINE, LABEL)
    assert scheme.time_label.a == 0x80
    assert theme_repo.load_color_scheme(kv, "dark") == DARK_SCHEME


def test_unchanged_colors_report_false(kv):
    theme_repo.save_accent_colors(kv, "dark", LINE, LABEL)
    assert theme_repo.save_accent_colors(kv, "dark", LINE, LABEL) is False
    assert theme_repo.save_accent_colors(kv, "dark", LABEL, LINE) is True


def test_alpha_counts_as_change(kv):
    theme_repo.save_accent_colors(kv, "dark", LINE, LABEL)
    assert theme_repo.save_accent_colors(kv, "dark", Color(0x12, 0x34, 0x56, 0x10), LABEL)


def test_unknown_theme(kv):
    with pytest.raises(ValueError):
        theme_repo.save_accent_colors(kv, "sepia", LINE, LABEL)


def test_clear(kv):
    theme_repo.save_accent_colors(kv, "light", LINE, LABEL)
    theme_repo.clear_accent_colors(kv, "light")
    assert theme_repo.load_color_scheme(kv, "light") == LIGHT_SCHEME


def test_malformed_stored_colors(kv):
    kv.set("theme.light.accent", '{"temperature_line": "red"}')
    assert theme_repo.load_color_scheme(kv, "light") == LIGHT_SCHEME
    kv.set("theme.light.accent", "not json")
    assert theme_repo.load_color_scheme(kv, "light") == LIGHT_SCHEME


def test_hash_is_stable():
    assert theme_repo.colors_hash(LINE, LABEL) == theme_repo.colors_hash(LINE, LABEL)
    assert len(theme_repo.colors_hash(LINE, LABEL)) == 16
