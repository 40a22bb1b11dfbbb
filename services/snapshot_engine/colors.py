"""Color resolution to '#RRGGBB'.

Priority: explicit ARGB, then theme index + tint, then the indexed palette.
Anything else is unresolved (None).
"""
from __future__ import annotations

from typing import Any, Optional

# Default Office theme, indexed by the theme slot used in styles.xml
THEME_COLORS = {
    0: "FFFFFF",  # lt1
    1: "000000",  # dk1
    2: "E7E6E6",  # lt2
    3: "44546A",  # dk2
    4: "4472C4",  # accent1
    5: "ED7D31",  # accent2
    6: "A5A5A5",  # accent3
    7: "FFC000",  # accent4
    8: "5B9BD5",  # accent5
    9: "70AD47",  # accent6
}

INDEXED_COLORS = {
    0: "#000000",
    1: "#FFFFFF",
    2: "#FF0000",
    3: "#00FF00",
    4: "#0000FF",
    5: "#FFFF00",
    6: "#FF00FF",
    7: "#00FFFF",
    8: "#000000",
    9: "#FFFFFF",
    64: "#000000",  # System foreground
    65: "#FFFFFF",  # System background
}


def _clamp_channel(value: float) -> int:
    return max(0, min(255, int(round(value))))


def apply_tint(hex_color: str, tint: float) -> str:
    """Lighten toward white (tint > 0) or darken toward black (tint < 0)."""
    hex_color = hex_color.lstrip("#")
    channels = [int(hex_color[i:i + 2], 16) for i in (0, 2, 4)]
    if tint > 0:
        channels = [c + (255 - c) * tint for c in channels]
    elif tint < 0:
        channels = [c * (1 + tint) for c in channels]
    return "#" + "".join(f"{_clamp_channel(c):02X}" for c in channels)


def argb_to_hex(argb: str) -> Optional[str]:
    """'FF4472C4' or '4472C4' -> '#4472C4'."""
    if not isinstance(argb, str):
        return None
    value = argb.strip().lstrip("#")
    if len(value) < 6:
        return None
    value = value[-6:]
    try:
        int(value, 16)
    except ValueError:
        return None
    return f"#{value.upper()}"


def resolve_color(
    argb: Optional[str] = None,
    theme: Optional[int] = None,
    tint: Optional[float] = None,
    indexed: Optional[int] = None,
) -> Optional[str]:
    """Resolve a color reference in priority order."""
    if argb:
        resolved = argb_to_hex(argb)
        if resolved:
            return resolved
    if theme is not None:
        base = THEME_COLORS.get(int(theme))
        if base is not None:
            return apply_tint(base, float(tint or 0))
    if indexed is not None:
        return INDEXED_COLORS.get(int(indexed))
    return None


def resolve_openpyxl_color(color: Any) -> Optional[str]:
    """Resolve an ``openpyxl.styles.colors.Color``.

    openpyxl returns a descriptor error string from ``.rgb`` when the color is
    theme- or index-based, so the active ``type`` decides which field to read.
    """
    if color is None:
        return None
    color_type = getattr(color, "type", None)
    if color_type == "rgb":
        return resolve_color(argb=color.rgb)
    if color_type == "theme":
        return resolve_color(theme=color.theme, tint=color.tint)
    if color_type == "indexed":
        return resolve_color(indexed=color.indexed)
    return None


def rgb_tuple_to_hex(rgb: Any) -> Optional[str]:
    """(r, g, b) as found in xlrd's colour_map -> '#RRGGBB'."""
    if not rgb or len(rgb) != 3:
        return None
    return "#" + "".join(f"{_clamp_channel(c):02X}" for c in rgb)
