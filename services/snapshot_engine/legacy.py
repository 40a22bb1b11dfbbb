"""Legacy binary workbooks (.xls) via xlrd.

xlrd exposes values and XF formatting records but no formulas, conditional
formats, filters or drawings, so only the cell-level part of the snapshot is
produced for these files.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import xlrd

from .cell_values import (
    BooleanContent,
    DateContent,
    EmptyContent,
    ErrorContent,
    HyperlinkContent,
    MergedContent,
    NumberContent,
    SourceContent,
    TextContent,
)
from .colors import resolve_color, rgb_tuple_to_hex
from .config import ImportSettings
from .mapper import (
    CellData,
    SheetMapping,
    WorkbookMapping,
    build_cell,
    new_sheet,
    propagate_merge_borders,
    put_cell,
)
from .number_formats import parse_number_format
from .registry import SheetRegistry
from .report import ImportReport
from .schemas import BorderSide, CellStyle, ColumnInfo, Freeze, MergeRegion, RowInfo
from .styles import DEFAULT_BORDER_COLOR, horizontal_code, vertical_code

logger = logging.getLogger(__name__)

# BIFF line style numbers -> snapshot border style codes
XLS_BORDER_CODES = {
    1: 1,  # thin
    2: 2,  # medium
    3: 5,  # dashed
    4: 4,  # dotted
    5: 3,  # thick
    6: 6,  # double
    7: 7,  # hair
    8: 8,  # medium dashed
    9: 9,  # dash-dot
    10: 10,  # medium dash-dot
    11: 11,  # dash-dot-dot
    12: 12,  # medium dash-dot-dot
    13: 13,  # slanted dash-dot
}

XLS_HORIZONTAL = {1: "left", 2: "center", 3: "right", 6: "centerContinuous"}
XLS_VERTICAL = {0: "top", 1: "center", 2: "bottom"}

SYSTEM_COLOUR_INDEXES = (0x40, 0x41, 0x7FFF)
TWIPS_PER_POINT = 20


def open_xls(data: bytes) -> Any:
    """Open a .xls byte buffer; raises xlrd.XLRDError for unreadable input."""
    return xlrd.open_workbook(file_contents=data, formatting_info=True)


# =============================================================================
# FORMATTING RECORDS
# =============================================================================

def _colour(book: Any, index: Optional[int]) -> Optional[str]:
    if index is None or index in SYSTEM_COLOUR_INDEXES:
        return None
    rgb = book.colour_map.get(index)
    return rgb_tuple_to_hex(rgb) if rgb else resolve_color(indexed=index)


def _border(book: Any, line_style: int, colour_index: int) -> Optional[BorderSide]:
    if not line_style:
        return None
    return BorderSide(
        style=XLS_BORDER_CODES.get(line_style, 1),
        color=_colour(book, colour_index) or DEFAULT_BORDER_COLOR,
    )


def number_format_of(book: Any, xf: Any) -> Optional[str]:
    fmt = book.format_map.get(xf.format_key)
    return fmt.format_str if fmt is not None else None


def style_from_xf(book: Any, xf: Any) -> Optional[CellStyle]:
    """CellStyle from an XF record; None for the default record."""
    font = book.font_list[xf.font_index]
    alignment = xf.alignment
    border = xf.border
    background = xf.background
    style = CellStyle(
        bold=True if font.bold else None,
        italic=True if font.italic else None,
        underline=True if font.underline_type else None,
        strike=True if font.struck_out else None,
        font_size=font.height / TWIPS_PER_POINT if font.height else None,
        font_name=font.name or None,
        font_color=_colour(book, font.colour_index),
        background_color=_colour(book, background.pattern_colour_index) if background.fill_pattern == 1 else None,
        horizontal_align=horizontal_code(XLS_HORIZONTAL.get(alignment.hor_align)),
        vertical_align=vertical_code(XLS_VERTICAL.get(alignment.vert_align)),
        wrap=True if alignment.text_wrapped else None,
        border_top=_border(book, border.top_line_style, border.top_colour_index),
        border_bottom=_border(book, border.bottom_line_style, border.bottom_colour_index),
        border_left=_border(book, border.left_line_style, border.left_colour_index),
        border_right=_border(book, border.right_line_style, border.right_colour_index),
        number_format=parse_number_format(number_format_of(book, xf)),
    )
    return None if style.is_empty() else style


# =============================================================================
# CELLS
# =============================================================================

def content_from_xlrd(book: Any, sheet: Any, row: int, col: int, merged: bool) -> SourceContent:
    """Classify an xlrd cell into a content variant."""
    if merged:
        return MergedContent()
    cell = sheet.cell(row, col)
    link = sheet.hyperlink_map.get((row, col))
    if link is not None and link.url_or_path and cell.ctype in (xlrd.XL_CELL_TEXT, xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return HyperlinkContent(url=link.url_or_path, text=str(cell.value or link.desc or ""))

    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return EmptyContent()
    if cell.ctype == xlrd.XL_CELL_TEXT:
        return TextContent(cell.value)
    if cell.ctype == xlrd.XL_CELL_NUMBER:
        return NumberContent(cell.value)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return BooleanContent(bool(cell.value))
    if cell.ctype == xlrd.XL_CELL_ERROR:
        return ErrorContent(xlrd.error_text_from_code.get(cell.value, "#N/A"))
    if cell.ctype == xlrd.XL_CELL_DATE:
        try:
            return DateContent(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
        except (xlrd.xldate.XLDateError, ValueError, OverflowError):
            return NumberContent(cell.value)
    return TextContent(str(cell.value))


def _merge_regions(sheet: Any) -> List[MergeRegion]:
    # xlrd ranges are half-open
    return [
        MergeRegion(start_row=rlo, end_row=rhi - 1, start_column=clo, end_column=chi - 1)
        for rlo, rhi, clo, chi in sheet.merged_cells
    ]


def _non_anchor_cells(merges: List[MergeRegion]) -> set:
    covered = set()
    for m in merges:
        for r in range(m.start_row, m.end_row + 1):
            for c in range(m.start_column, m.end_column + 1):
                if (r, c) != (m.start_row, m.start_column):
                    covered.add((r, c))
    return covered


def map_xls_sheet(book: Any, sheet: Any, sheet_id: str, settings: ImportSettings, report: ImportReport) -> SheetMapping:
    merges = _merge_regions(sheet)
    covered = _non_anchor_cells(merges)
    cell_data: CellData = {}

    for row in range(sheet.nrows):
        for col in range(sheet.ncols):
            # Cells without a record carry no value and no formatting
            if sheet.cell_type(row, col) == xlrd.XL_CELL_EMPTY and (row, col) not in sheet.hyperlink_map:
                continue
            try:
                content = content_from_xlrd(book, sheet, row, col, (row, col) in covered)
                xf_index = sheet.cell_xf_index(row, col)
                xf = book.xf_list[xf_index] if xf_index >= 0 else None
                style = style_from_xf(book, xf) if xf is not None else None
                link = sheet.hyperlink_map.get((row, col))
                cell = build_cell(
                    content, style, number_format_of(book, xf) if xf is not None else None,
                    link.url_or_path if link is not None else None,
                )
            except (IndexError, KeyError, TypeError, ValueError) as e:
                report.skip("map", "malformed_cell", f"{sheet.name}!R{row + 1}C{col + 1}: {e}")
                continue
            if cell is not None:
                put_cell(cell_data, row, col, cell)

    propagate_merge_borders(cell_data, merges)

    rows: Dict[int, RowInfo] = {}
    for index, info in sheet.rowinfo_map.items():
        if info.hidden or info.height:
            rows[index] = RowInfo(height=info.height / TWIPS_PER_POINT if info.height else None, hidden=bool(info.hidden))

    columns: Dict[int, ColumnInfo] = {}
    for index, info in sheet.colinfo_map.items():
        width = info.width / 256 * settings.column_width_factor if info.width else None
        columns[index] = ColumnInfo(width=width, hidden=bool(info.hidden))

    freeze = None
    if sheet.panes_are_frozen:
        freeze = Freeze(start_row=sheet.horz_split_pos, start_column=sheet.vert_split_pos)

    return SheetMapping(new_sheet(
        sheet_id,
        sheet.name,
        settings,
        hidden=sheet.visibility != 0,
        cell_data=cell_data,
        merges=merges,
        freeze=freeze,
        row_data=rows,
        column_data=columns,
    ))


def map_xls_workbook(book: Any, registry: SheetRegistry, report: ImportReport, settings: ImportSettings) -> WorkbookMapping:
    """Map every sheet of an xlrd Book, in order."""
    result = WorkbookMapping()
    for sheet in book.sheets():
        sheet_id = registry.register(sheet.name)
        try:
            mapping = map_xls_sheet(book, sheet, sheet_id, settings, report)
        except (IndexError, KeyError, TypeError, ValueError, AttributeError) as e:
            report.skip("map", "malformed_sheet", f"Sheet {sheet.name!r} could not be mapped: {e}")
            mapping = SheetMapping(new_sheet(sheet_id, sheet.name, settings))
        logger.info(f"[MAP] {sheet.name}: {sheet.nrows} rows x {sheet.ncols} cols (xls)")
        result.add(mapping)
    return result
