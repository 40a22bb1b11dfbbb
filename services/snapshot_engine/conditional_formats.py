"""Conditional formatting rules -> ImportedConditionalFormat."""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from .colors import resolve_openpyxl_color
from .registry import new_id
from .schemas import ConditionalFormatType, ImportedConditionalFormat

DATA_BAR_POSITIVE = "#638EC6"
DATA_BAR_NEGATIVE = "#FF0000"
COLOR_SCALE_LOW = "#F8696B"
COLOR_SCALE_MID = "#FFEB84"
COLOR_SCALE_HIGH = "#63BE7B"
DEFAULT_ICON_SET = "3TrafficLights1"

CFVO_TYPES = {
    "min": "min",
    "max": "max",
    "num": "num",
    "number": "num",
    "percent": "percent",
    "percentile": "percentile",
    "formula": "formula",
}

HIGHLIGHT_RULE_TYPES = frozenset([
    "cellIs",
    "containsText",
    "notContainsText",
    "beginsWith",
    "endsWith",
    "containsBlanks",
    "notContainsBlanks",
    "containsErrors",
    "notContainsErrors",
    "duplicateValues",
    "uniqueValues",
    "top10",
    "aboveAverage",
    "timePeriod",
    "expression",
])

RANGE_SPLIT_RE = re.compile(r"[\s,]+")


def split_ranges(sqref: Any) -> List[str]:
    """'A1:A10 C1:C10' or 'A1:A10,C1:C10' -> ['A1:A10', 'C1:C10']."""
    return [part for part in RANGE_SPLIT_RE.split(str(sqref or "").strip()) if part]


def cfvo_type(value: Optional[str]) -> str:
    return CFVO_TYPES.get(value or "", "num")


def _cfvo(cfvo: Any) -> Dict[str, Any]:
    return {"type": cfvo_type(cfvo.type), "value": cfvo.val}


def _data_bar(rule: Any, base: Dict[str, Any]) -> Dict[str, Any]:
    bar = rule.dataBar
    cfvos = list(bar.cfvo or [])
    return {
        **base,
        "positive_color": resolve_openpyxl_color(bar.color) or DATA_BAR_POSITIVE,
        # Negative bar color and gradient live in x14 extensions
        "negative_color": DATA_BAR_NEGATIVE,
        "gradient": True,
        "show_value": bar.showValue is not False,
        "min_value": _cfvo(cfvos[0]) if len(cfvos) > 0 else {"type": "min"},
        "max_value": _cfvo(cfvos[1]) if len(cfvos) > 1 else {"type": "max"},
    }


def _scale_default(index: int, count: int) -> str:
    if index == 0:
        return COLOR_SCALE_LOW
    if index == count - 1:
        return COLOR_SCALE_HIGH
    return COLOR_SCALE_MID


def _color_scale(rule: Any, base: Dict[str, Any]) -> Dict[str, Any]:
    scale = rule.colorScale
    cfvos = list(scale.cfvo or [])
    colors = list(scale.color or [])
    stops = []
    for i, cfvo in enumerate(cfvos):
        color = resolve_openpyxl_color(colors[i]) if i < len(colors) else None
        stops.append({"color": color or _scale_default(i, len(cfvos)), "value": _cfvo(cfvo)})
    return {**base, "color_scale": stops}


def _icon_set(rule: Any, base: Dict[str, Any]) -> Dict[str, Any]:
    icons = rule.iconSet
    return {
        **base,
        "icon_set": icons.iconSet or DEFAULT_ICON_SET,
        "show_value": icons.showValue is not False,
        "reverse": bool(icons.reverse),
        "icons": [
            {
                **_cfvo(cfvo),
                "operator": "greaterThan" if cfvo.gte is False else "greaterThanOrEqual",
            }
            for cfvo in (icons.cfvo or [])
        ],
    }


def _differential_style(dxf: Any) -> Dict[str, Any]:
    if dxf is None:
        return {}
    style: Dict[str, Any] = {}
    font = dxf.font
    if font is not None:
        if font.b:
            style["bold"] = True
        if font.i:
            style["italic"] = True
        color = resolve_openpyxl_color(font.color)
        if color:
            style["font_color"] = color
    fill = dxf.fill
    if fill is not None:
        background = resolve_openpyxl_color(getattr(fill, "bgColor", None)) or resolve_openpyxl_color(
            getattr(fill, "fgColor", None)
        )
        if background:
            style["background_color"] = background
    return style


def _highlight(rule: Any, base: Dict[str, Any]) -> Dict[str, Any]:
    config = {
        **base,
        "rule": rule.type,
        "operator": rule.operator,
        "formulas": list(rule.formula or []),
        "style": _differential_style(rule.dxf),
    }
    if rule.text is not None:
        config["text"] = rule.text
    if rule.type == "top10":
        config["rank"] = rule.rank
        config["bottom"] = bool(rule.bottom)
        config["percent"] = bool(rule.percent)
    if rule.type == "timePeriod":
        config["time_period"] = rule.timePeriod
    if rule.type == "aboveAverage":
        config["above_average"] = rule.aboveAverage is not False
    return config


def _original_rule(rule: Any) -> Dict[str, Any]:
    return {
        key: value for key, value in {
            "type": rule.type,
            "operator": rule.operator,
            "formula": list(rule.formula or []),
            "text": rule.text,
            "priority": rule.priority,
        }.items()
        if value not in (None, [])
    }


def convert_rule(rule: Any, ranges: List[str], index: int, sheet_id: str) -> Optional[ImportedConditionalFormat]:
    """Convert one openpyxl Rule; None when it has no type."""
    if rule is None or not rule.type:
        return None
    base = {
        "stop_if_true": bool(rule.stopIfTrue),
        "priority": rule.priority or index,
    }
    if rule.type == "dataBar" and rule.dataBar is not None:
        rule_type, config = ConditionalFormatType.DATA_BAR, _data_bar(rule, base)
    elif rule.type == "colorScale" and rule.colorScale is not None:
        rule_type, config = ConditionalFormatType.COLOR_SCALE, _color_scale(rule, base)
    elif rule.type == "iconSet" and rule.iconSet is not None:
        rule_type, config = ConditionalFormatType.ICON_SET, _icon_set(rule, base)
    elif rule.type in HIGHLIGHT_RULE_TYPES:
        rule_type, config = ConditionalFormatType.HIGHLIGHT_CELL, _highlight(rule, base)
    else:
        rule_type = ConditionalFormatType.OTHER
        config = {**base, "original_type": rule.type, "original_rule": _original_rule(rule)}
    return ImportedConditionalFormat(
        id=new_id("cf"),
        sheet_id=sheet_id,
        ranges=ranges,
        rule_type=rule_type,
        config=config,
    )


def convert_conditional_formats(ws: Any, sheet_id: str) -> List[ImportedConditionalFormat]:
    """All rules of an openpyxl worksheet, one record per rule."""
    formats: List[ImportedConditionalFormat] = []
    index = 0
    for cf in ws.conditional_formatting:
        ranges = split_ranges(cf.sqref)
        for rule in cf.rules:
            converted = convert_rule(rule, ranges, index, sheet_id)
            index += 1
            if converted is not None:
                formats.append(converted)
    return formats
