"""Source cell content and value resolution.

Every source cell is first classified into exactly one content variant.
``resolve_value`` then turns a variant into the scalar that goes into the
snapshot, and ``original_value`` re-derives a safe display value when the
resolved one is not usable (NaN, infinity or a "NaN" string).
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, List, Optional, Union

from openpyxl.cell.cell import MergedCell
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.worksheet.formula import ArrayFormula, DataTableFormula

from .colors import resolve_openpyxl_color
from .dates import (
    date_to_excel_serial,
    format_date_by_pattern,
    format_serial,
    parse_date_string,
    time_to_fraction,
)
from .number_formats import is_date_format
from .schemas import CellStyle, RichTextRun, ValueType

Scalar = Union[bool, int, float, str]


# =============================================================================
# CONTENT VARIANTS
# =============================================================================

@dataclass(frozen=True)
class NumberContent:
    value: float


@dataclass(frozen=True)
class TextContent:
    value: str


@dataclass(frozen=True)
class BooleanContent:
    value: bool


@dataclass(frozen=True)
class DateContent:
    value: Union[datetime, date, time, timedelta]


@dataclass(frozen=True)
class FormulaContent:
    formula: Optional[str]  # Without normalization; may lack the leading "="
    cached: Optional[Scalar] = None


@dataclass(frozen=True)
class TextRun:
    text: str
    style: Optional[CellStyle] = None


@dataclass(frozen=True)
class RichTextContent:
    runs: List[TextRun] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)


@dataclass(frozen=True)
class HyperlinkContent:
    url: str
    text: str = ""


@dataclass(frozen=True)
class MergedContent:
    pass


@dataclass(frozen=True)
class ErrorContent:
    code: str


@dataclass(frozen=True)
class EmptyContent:
    pass


SourceContent = Union[
    NumberContent, TextContent, BooleanContent, DateContent, FormulaContent,
    RichTextContent, HyperlinkContent, MergedContent, ErrorContent, EmptyContent,
]


# =============================================================================
# CLASSIFICATION
# =============================================================================

def content_from_scalar(value: Any) -> SourceContent:
    """Classify a plain Python value (also used for cached formula results)."""
    if value is None:
        return EmptyContent()
    if isinstance(value, bool):
        return BooleanContent(value)
    if isinstance(value, (int, float)):
        return NumberContent(value)
    if isinstance(value, (datetime, date, time, timedelta)):
        return DateContent(value)
    return TextContent(str(value))


def _run_style(font: Any) -> Optional[CellStyle]:
    """Style delta of an openpyxl InlineFont; None when it sets nothing."""
    if font is None:
        return None
    style = CellStyle(
        bold=True if font.b else None,
        italic=True if font.i else None,
        underline=True if font.u and font.u != "none" else None,
        strike=True if font.strike else None,
        font_size=font.sz,
        font_name=font.rFont,
        font_color=resolve_openpyxl_color(font.color),
    )
    return None if style.is_empty() else style


def _rich_text_content(value: CellRichText) -> RichTextContent:
    runs: List[TextRun] = []
    for block in value:
        if isinstance(block, TextBlock):
            runs.append(TextRun(block.text or "", _run_style(block.font)))
        else:
            runs.append(TextRun(str(block)))
    return RichTextContent(runs)


def hyperlink_url(cell: Any) -> Optional[str]:
    """Target of a cell's hyperlink; internal locations become "#Sheet!A1"."""
    link = getattr(cell, "hyperlink", None)
    if link is None:
        return None
    if link.target:
        return link.target
    return f"#{link.location}" if link.location else None


def content_from_openpyxl(cell: Any, cached: Any = None) -> SourceContent:
    """Classify an openpyxl cell; ``cached`` is the same cell from a data_only load.

    Only plain text and empty cells become HyperlinkContent. Any other linked
    cell keeps its own variant and the link is attached by the mapper.
    """
    if isinstance(cell, MergedCell):
        return MergedContent()

    value = cell.value
    url = hyperlink_url(cell)
    if url is not None and cell.data_type not in ("f", "e") and (value is None or isinstance(value, str)):
        return HyperlinkContent(url=url, text=value or "")

    if isinstance(value, CellRichText):
        return _rich_text_content(value)
    if isinstance(value, ArrayFormula):
        return FormulaContent(value.text, _scalar(cached))
    if isinstance(value, DataTableFormula):
        return FormulaContent(None, _scalar(cached))
    if cell.data_type == "f" and isinstance(value, str):
        return FormulaContent(value, _scalar(cached))
    if cell.data_type == "e" and value is not None:
        return ErrorContent(str(value))
    return content_from_scalar(value)


def _scalar(value: Any) -> Any:
    # Cached formula results can come back as rich text from the second load
    if isinstance(value, CellRichText):
        return str(value)
    return value


# =============================================================================
# RESOLUTION
# =============================================================================

def normalize_formula(formula: Optional[str]) -> Optional[str]:
    if not formula:
        return None
    formula = formula.strip()
    if not formula:
        return None
    return formula if formula.startswith("=") else f"={formula}"


def _date_serial(value: Union[datetime, date, time, timedelta]) -> float:
    if isinstance(value, time):
        return time_to_fraction(value)
    if isinstance(value, timedelta):
        return value.total_seconds() / 86400
    return date_to_excel_serial(value)


def _resolve_date(value: Union[datetime, date, time, timedelta], number_format: Optional[str]) -> Scalar:
    serial = _date_serial(value)
    if not isinstance(value, (datetime, date)) or not is_date_format(number_format):
        return serial
    formatted = format_date_by_pattern(value, number_format)
    return formatted or serial


def resolve_value(content: SourceContent, number_format: Optional[str] = None) -> Optional[Scalar]:
    """Scalar snapshot value for a content variant; None means "no value"."""
    if isinstance(content, EmptyContent):
        return None
    if isinstance(content, MergedContent):
        return ""
    if isinstance(content, BooleanContent):
        return content.value
    if isinstance(content, NumberContent):
        if is_date_format(number_format) and content.value > 0:
            return format_serial(content.value, number_format) or content.value
        return content.value
    if isinstance(content, TextContent):
        if is_date_format(number_format):
            parsed = parse_date_string(content.value)
            if parsed is not None:
                return format_date_by_pattern(parsed, number_format) or content.value
        return content.value
    if isinstance(content, DateContent):
        return _resolve_date(content.value, number_format)
    if isinstance(content, FormulaContent):
        if content.cached is not None:
            return resolve_value(content_from_scalar(content.cached), number_format)
        return normalize_formula(content.formula)
    if isinstance(content, RichTextContent):
        return content.text
    if isinstance(content, HyperlinkContent):
        return content.text or content.url
    if isinstance(content, ErrorContent):
        return content.code
    raise TypeError(f"Unhandled cell content: {type(content).__name__}")


def is_invalid_value(value: Any) -> bool:
    """NaN, infinities and strings carrying a literal 'NaN'."""
    if isinstance(value, float) and not math.isfinite(value):
        return True
    return isinstance(value, str) and "NaN" in value


def original_value(content: SourceContent) -> Scalar:
    """Display value re-derived from the untouched source content."""
    if isinstance(content, DateContent) and isinstance(content.value, (datetime, date)):
        value = content.value
        return f"{value.year}/{value.month}/{value.day}"
    if isinstance(content, RichTextContent):
        return content.text
    if isinstance(content, HyperlinkContent):
        return content.text or content.url
    if isinstance(content, FormulaContent) and content.cached is not None:
        cached = content.cached
        if isinstance(cached, (bool, int, float, str)) and not is_invalid_value(cached):
            return cached
    if isinstance(content, TextContent):
        return content.value
    return ""


def safe_value(content: SourceContent, number_format: Optional[str] = None) -> Optional[Scalar]:
    """resolve_value with the NaN fallback applied."""
    value = resolve_value(content, number_format)
    if value is None or not is_invalid_value(value):
        return value
    fallback = original_value(content)
    return "" if is_invalid_value(fallback) else fallback


def value_type_of(value: Scalar) -> ValueType:
    if isinstance(value, bool):
        return ValueType.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueType.NUMBER
    return ValueType.STRING


def rich_text_runs(content: RichTextContent) -> List[RichTextRun]:
    """Offsets of the styled runs inside the joined text."""
    runs: List[RichTextRun] = []
    offset = 0
    for run in content.runs:
        end = offset + len(run.text)
        if run.style is not None and end > offset:
            runs.append(RichTextRun(start=offset, end=end, style=run.style))
        offset = end
    return runs
