"""openpyxl style objects -> CellStyle."""
from __future__ import annotations

from typing import Any, Optional

from .colors import resolve_openpyxl_color
from .number_formats import parse_number_format
from .schemas import BorderSide, CellStyle, HorizontalAlign, VerticalAlign

DEFAULT_BORDER_COLOR = "#000000"

BORDER_STYLE_CODES = {
    "thin": 1,
    "medium": 2,
    "thick": 3,
    "dotted": 4,
    "dashed": 5,
    "double": 6,
    "hair": 7,
    "mediumDashed": 8,
    "dashDot": 9,
    "mediumDashDot": 10,
    "dashDotDot": 11,
    "mediumDashDotDot": 12,
    "slantDashDot": 13,
}

HORIZONTAL_CODES = {
    "left": HorizontalAlign.LEFT,
    "center": HorizontalAlign.CENTER,
    "centerContinuous": HorizontalAlign.CENTER,
    "right": HorizontalAlign.RIGHT,
}

VERTICAL_CODES = {
    "top": VerticalAlign.TOP,
    "center": VerticalAlign.MIDDLE,
    "middle": VerticalAlign.MIDDLE,
    "bottom": VerticalAlign.BOTTOM,
}


def horizontal_code(value: Optional[str]) -> Optional[HorizontalAlign]:
    if not value or value == "general":
        return None
    return HORIZONTAL_CODES.get(value, HorizontalAlign.LEFT)


def vertical_code(value: Optional[str]) -> Optional[VerticalAlign]:
    if not value:
        return None
    return VERTICAL_CODES.get(value, VerticalAlign.MIDDLE)


def border_side(side: Any) -> Optional[BorderSide]:
    """openpyxl Side -> BorderSide; None when the edge has no line."""
    if side is None or not side.style:
        return None
    return BorderSide(
        style=BORDER_STYLE_CODES.get(side.style, 1),
        color=resolve_openpyxl_color(side.color) or DEFAULT_BORDER_COLOR,
    )


def _background(fill: Any) -> Optional[str]:
    pattern = getattr(fill, "patternType", None)
    if not pattern or pattern == "none":
        return None
    return resolve_openpyxl_color(fill.fgColor) or resolve_openpyxl_color(fill.bgColor)


def style_from_openpyxl(cell: Any) -> Optional[CellStyle]:
    """Style bag for a styled cell; None for cells on the default style."""
    if not cell.has_style:
        return None

    font = cell.font
    alignment = cell.alignment
    border = cell.border
    style = CellStyle(
        bold=True if font.b else None,
        italic=True if font.i else None,
        underline=True if font.u and font.u != "none" else None,
        strike=True if font.strike else None,
        font_size=font.sz,
        font_name=font.name,
        font_color=resolve_openpyxl_color(font.color),
        background_color=_background(cell.fill),
        horizontal_align=horizontal_code(alignment.horizontal),
        vertical_align=vertical_code(alignment.vertical),
        wrap=True if alignment.wrap_text else None,
        border_top=border_side(border.top),
        border_bottom=border_side(border.bottom),
        border_left=border_side(border.left),
        border_right=border_side(border.right),
        number_format=parse_number_format(cell.number_format),
    )
    return None if style.is_empty() else style
