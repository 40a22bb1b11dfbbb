"""Excel serial dates and pattern-driven date strings.

Serials count days from 1899-12-30, which keeps Excel's phantom 1900-02-29
out of every serial from 61 onward. Formatting and parsing never raise:
formatting returns "" and parsing returns None when the input is unusable.
"""
from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

logger = logging.getLogger(__name__)

EXCEL_EPOCH = datetime(1899, 12, 30)
MIN_YEAR = 1900
MAX_YEAR = 2100

SLASH_YMD_RE = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")
DASH_YMD_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
CJK_YMD_RE = re.compile(r"^(\d{4})年(\d{1,2})月(\d{1,2})日$")
US_MDY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

MDY_PATTERN_RE = re.compile(r"m+/d+/y+", re.IGNORECASE)
DMY_PATTERN_RE = re.compile(r"d+/m+/y+", re.IGNORECASE)

# Tried after the literal families when nothing else matched
FALLBACK_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%d %B %Y", "%d %b %Y", "%Y.%m.%d")

DateLike = Union[date, datetime]


# =============================================================================
# SERIAL CONVERSION
# =============================================================================

def excel_serial_to_date(serial: float) -> Optional[datetime]:
    """Serial day number -> datetime; None for non-finite or unrepresentable input."""
    if isinstance(serial, bool) or not isinstance(serial, (int, float)):
        return None
    if not math.isfinite(serial):
        return None
    try:
        result = EXCEL_EPOCH + timedelta(days=serial)
    except OverflowError:
        return None
    # Drop float noise below one second
    if result.microsecond:
        result = (result + timedelta(microseconds=500_000)).replace(microsecond=0)
    return result


def date_to_excel_serial(value: DateLike) -> float:
    """datetime or date -> serial day number, including the time fraction."""
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is not None:
        value = value.replace(tzinfo=None)
    delta = value - EXCEL_EPOCH
    return delta.days + delta.seconds / 86400 + delta.microseconds / 86_400_000_000


def time_to_fraction(value: time) -> float:
    """Time of day -> fraction of a day."""
    return (value.hour * 3600 + value.minute * 60 + value.second) / 86400


# =============================================================================
# FORMATTING
# =============================================================================

def _safe(text: str) -> str:
    if not text or "NaN" in text:
        return ""
    return text


def format_date_by_pattern(value: Optional[DateLike], pattern: Optional[str] = None) -> str:
    """Render a date the way its number format family reads.

    Families, in priority order: yyyy/m/d (with an optional h:mm:ss suffix),
    yyyy-mm-dd, m/d/yy, d/m/yy and 年月日. Everything else falls back to y/m/d.
    """
    if value is None or not isinstance(value, date):
        return ""
    year, month, day = value.year, value.month, value.day
    if isinstance(value, datetime):
        hours, minutes, seconds = value.hour, value.minute, value.second
    else:
        hours = minutes = seconds = 0

    if year < MIN_YEAR or year > MAX_YEAR:
        logger.debug(f"[DATE] Year {year} outside {MIN_YEAR}-{MAX_YEAR}, not formatted")
        return ""

    if not pattern or pattern == "General":
        return _safe(f"{year}/{month}/{day}")

    if "yyyy" in pattern and "/" in pattern:
        if "h:mm" in pattern or "hh:mm" in pattern:
            clock = f"{hours}:{minutes:02d}:{seconds:02d}"
            if "mm/dd" in pattern:
                return _safe(f"{year}/{month:02d}/{day:02d} {clock}")
            return _safe(f"{year}/{month}/{day} {clock}")
        if "mm" in pattern and "dd" in pattern:
            return _safe(f"{year}/{month:02d}/{day:02d}")
        return _safe(f"{year}/{month}/{day}")

    if "yyyy" in pattern and "-" in pattern:
        if "mm" in pattern and "dd" in pattern:
            return _safe(f"{year}-{month:02d}-{day:02d}")
        return _safe(f"{year}-{month}-{day}")

    short_year = f"{year % 100:02d}"
    if MDY_PATTERN_RE.search(pattern):
        if "mm" in pattern and "dd" in pattern:
            return _safe(f"{month:02d}/{day:02d}/{short_year}")
        return _safe(f"{month}/{day}/{short_year}")

    if DMY_PATTERN_RE.search(pattern):
        if "mm" in pattern and "dd" in pattern:
            return _safe(f"{day:02d}/{month:02d}/{short_year}")
        return _safe(f"{day}/{month}/{short_year}")

    if "年" in pattern or "月" in pattern or "日" in pattern:
        return _safe(f"{year}年{month}月{day}日")

    return _safe(f"{year}/{month}/{day}")


def format_serial(serial: float, pattern: Optional[str] = None) -> str:
    return format_date_by_pattern(excel_serial_to_date(serial), pattern)


# =============================================================================
# PARSING
# =============================================================================

def _build(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def parse_date_string(text: Optional[str]) -> Optional[datetime]:
    """Parse '2026/1/7', '2026-01-07', '2026年1月7日' or '1/7/2026'.

    Falls back to ISO 8601 and a few long-form layouts, accepting only years
    between 1900 and 2100.
    """
    if not text or not isinstance(text, str):
        return None
    trimmed = text.strip()
    if not trimmed:
        return None

    for pattern in (SLASH_YMD_RE, DASH_YMD_RE, CJK_YMD_RE):
        match = pattern.match(trimmed)
        if match:
            return _build(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = US_MDY_RE.match(trimmed)
    if match:
        return _build(int(match.group(3)), int(match.group(1)), int(match.group(2)))

    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(trimmed)
    except ValueError:
        for layout in FALLBACK_FORMATS:
            try:
                parsed = datetime.strptime(trimmed, layout)
                break
            except ValueError:
                continue
    if parsed is None or not (MIN_YEAR <= parsed.year <= MAX_YEAR):
        return None
    return parsed.replace(tzinfo=None)
