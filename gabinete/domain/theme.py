# gabinete/domain/theme.py
from __future__ import annotations

import colorsys
import re
from dataclasses import dataclass

from ..errors import ValidationError

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")


def normalize_hex(value: str) -> str:
    m = _HEX_RE.match((value or "").strip())
    if not m:
        raise ValidationError(f"invalid hex color {value!r}", "Colors must be in #RRGGBB format.")
    return "#" + m.group(1).lower()


def _hls(hex_color: str) -> tuple[float, float, float]:
    h = normalize_hex(hex_color)[1:]
    r, g, b = (int(h[i : i + 2], 16) / 255 for i in (0, 2, 4))
    return colorsys.rgb_to_hls(r, g, b)


def _fmt(h: float, s: float, l: float) -> str:
    return f"{round(h * 360)} {round(s * 100)}% {round(l * 100)}%"


def hex_to_hsl(hex_color: str) -> str:
    """'#2563eb' -> '221 83% 53%' (CSS custom-property form)."""
    h, l, s = _hls(hex_color)
    return _fmt(h, s, l)


def adjust_lightness(hex_color: str, amount: int) -> str:
    """Shift lightness by `amount` percentage points, clamped to [0, 100]."""
    h, l, s = _hls(hex_color)
    l = min(1.0, max(0.0, l + amount / 100.0))
    return _fmt(h, s, l)


def foreground_for(hex_color: str) -> str:
    """Black or white text, whichever reads better on `hex_color`."""
    h = normalize_hex(hex_color)[1:]
    r, g, b = (int(h[i : i + 2], 16) for i in (0, 2, 4))
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return "0 0% 0%" if luminance > 0.6 else "0 0% 100%"


@dataclass(frozen=True)
class TenantTheme:
    primary: str
    primary_foreground: str
    primary_light: str
    primary_dark: str
    secondary: str
    secondary_foreground: str

    def as_dict(self) -> dict[str, str]:
        return {
            "primary": self.primary,
            "primary_foreground": self.primary_foreground,
            "primary_light": self.primary_light,
            "primary_dark": self.primary_dark,
            "secondary": self.secondary,
            "secondary_foreground": self.secondary_foreground,
        }


def build_theme(primary_hex: str, secondary_hex: str) -> TenantTheme:
    return TenantTheme(
        primary=hex_to_hsl(primary_hex),
        primary_foreground=foreground_for(primary_hex),
        primary_light=adjust_lightness(primary_hex, 30),
        primary_dark=adjust_lightness(primary_hex, -15),
        secondary=hex_to_hsl(secondary_hex),
        secondary_foreground=foreground_for(secondary_hex),
    )
