"""Heuristic number format classification.

This is a keyword scan over the format string, not a format compiler.
Ambiguous patterns are classified as non-date so ordinary numbers are
never turned into dates.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Optional

from .schemas import NumberFormat

# Built-in numFmtId values that always render as dates or times
DATE_FORMAT_IDS = frozenset(list(range(14, 23)) + [45, 46, 47] + list(range(176, 183)))

DATE_KEYWORDS = (
    "yyyy", "yy", "mm", "dd", "hh", "ss",
    "h:mm", "m/d", "d/m", "am/pm", "a/p",
    "年", "月", "日", "上午", "下午",
)

DECIMAL_RE = re.compile(r"\.([0#?]+)")
# Quoted literals, escaped characters and bracketed sections other than
# elapsed-time markers such as [h] or [mm]
LITERAL_RE = re.compile(r'"[^"]*"|\\.|\[(?![hms]+\])[^\]]*\]', re.IGNORECASE)

CURRENCY_SYMBOLS = ("$", "¥", "€", "£")

# Well-known patterns with a fixed semantic type
BUILTIN_FORMAT_TYPES: Dict[str, str] = {
    "General": "general",
    "0": "number",
    "0.0": "number",
    "0.00": "number",
    "0.000": "number",
    "0.0000": "number",
    "#,##0": "number",
    "#,##0.0": "number",
    "#,##0.00": "number",
    "#,##0.000": "number",
    "#,##0.0000": "number",
    "0%": "percent",
    "0.0%": "percent",
    "0.00%": "percent",
    "0.000%": "percent",
    "0.00E+00": "scientific",
    "##0.0E+0": "scientific",
    "¥#,##0": "currency",
    "¥#,##0.00": "currency",
    '"¥"#,##0': "currency",
    '"¥"#,##0.00': "currency",
    "$#,##0": "currency",
    "$#,##0.00": "currency",
    '"$"#,##0': "currency",
    '"$"#,##0.00': "currency",
    "_-¥* #,##0_-": "accounting",
    "_-¥* #,##0.00_-": "accounting",
    "yyyy-mm-dd": "date",
    "yyyy/mm/dd": "date",
    "yyyy年m月d日": "date",
    "mm-dd-yy": "date",
    "m/d/yy": "date",
    "d-mmm-yy": "date",
    "d-mmm": "date",
    "mmm-yy": "date",
    "h:mm": "time",
    "h:mm:ss": "time",
    "h:mm AM/PM": "time",
    "h:mm:ss AM/PM": "time",
    "yyyy-mm-dd h:mm": "datetime",
    "yyyy-mm-dd h:mm:ss": "datetime",
    "m/d/yy h:mm": "datetime",
    "@": "text",
}


def _first_section(pattern: str) -> str:
    return pattern.split(";")[0]


def is_date_format(pattern: Optional[str], builtin_id: Optional[int] = None) -> bool:
    """True when values under ``pattern`` should be shown as dates or times."""
    if builtin_id is not None and builtin_id in DATE_FORMAT_IDS:
        return True
    if not pattern or pattern == "General":
        return False
    stripped = LITERAL_RE.sub("", _first_section(pattern)).lower()
    if not stripped.strip():
        return False
    return any(keyword in stripped for keyword in DATE_KEYWORDS)


def classify_number_format(pattern: str) -> Dict[str, Any]:
    """Probe a pattern for percent, currency, scientific and similar traits."""
    decimal_match = DECIMAL_RE.search(pattern)
    return {
        "is_percent": "%" in pattern,
        "is_currency": any(symbol in pattern for symbol in CURRENCY_SYMBOLS),
        "is_scientific": "E+" in pattern.upper() or "E-" in pattern.upper(),
        "has_thousands_separator": "," in pattern,
        "decimal_places": len(decimal_match.group(1)) if decimal_match else 0,
        "is_date_time": is_date_format(pattern),
        "has_negative_format": "[Red]" in pattern or ("(" in pattern and ")" in pattern),
    }


def _infer_format_type(traits: Dict[str, Any]) -> Optional[str]:
    if traits["is_date_time"]:
        return "date"
    if traits["is_percent"]:
        return "percent"
    if traits["is_scientific"]:
        return "scientific"
    if traits["is_currency"]:
        return "currency"
    return None


def parse_number_format(pattern: Optional[str]) -> Optional[NumberFormat]:
    """Build a NumberFormat descriptor; None for 'General' or an empty pattern."""
    if not pattern or pattern == "General":
        return None
    traits = classify_number_format(pattern)
    format_type = BUILTIN_FORMAT_TYPES.get(pattern) or _infer_format_type(traits)
    return NumberFormat(pattern=pattern, format_type=format_type, **traits)
