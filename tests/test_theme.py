# tests/test_theme.py
from __future__ import annotations

import pytest

from gabinete.domain.theme import adjust_lightness, build_theme, foreground_for, hex_to_hsl, normalize_hex
from gabinete.errors import ValidationError


def test_hex_to_hsl():
    assert hex_to_hsl("#2563eb") == "221 83% 53%"
    assert hex_to_hsl("#ffffff") == "0 0% 100%"
    assert hex_to_hsl("000000") == "0 0% 0%"


def test_adjust_lightness_clamps():
    assert adjust_lightness("#000000", 150) == "0 0% 100%"
    assert adjust_lightness("#ffffff", -150) == "0 0% 0%"


def test_foreground_contrast():
    assert foreground_for("#ffffff") == "0 0% 0%"
    assert foreground_for("#1e40af") == "0 0% 100%"


def test_invalid_hex_rejected():
    assert normalize_hex("2563EB") == "#2563eb"
    for bad in ("#abc", "blue", "", "#2563eg"):
        with pytest.raises(ValidationError):
            normalize_hex(bad)


def test_build_theme_palette():
    theme = build_theme("#2563eb", "#1e40af").as_dict()
    assert theme["primary"] == "221 83% 53%"
    assert theme["primary_foreground"] == "0 0% 100%"
    assert set(theme) == {
        "primary",
        "primary_foreground",
        "primary_light",
        "primary_dark",
        "secondary",
        "secondary_foreground",
    }
