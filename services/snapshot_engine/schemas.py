"""Pydantic schemas for the canonical spreadsheet snapshot.

The snapshot is the engine-neutral representation produced by an import:
- Sheets with sparse cell, row and column maps
- Cell values, formulas, rich text, hyperlinks and styles
- Merge regions and freeze panes
- Side collections for images, conditional formats, filters, sorts,
  charts and pivot tables
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================

class ValueType(str, Enum):
    """Type tag carried next to a resolved cell value."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


class HorizontalAlign(int, Enum):
    LEFT = 1
    CENTER = 2
    RIGHT = 3


class VerticalAlign(int, Enum):
    TOP = 1
    MIDDLE = 2
    BOTTOM = 3


class ImageType(str, Enum):
    FLOATING = "floating"  # Anchored to the drawing layer
    CELL = "cell"  # Hosted inside a single cell


class ChartType(str, Enum):
    """Closed set of chart families a consumer can rebuild."""
    COLUMN = "column"
    BAR = "bar"
    LINE = "line"
    AREA = "area"
    PIE = "pie"
    DOUGHNUT = "doughnut"
    SCATTER = "scatter"
    RADAR = "radar"
    BUBBLE = "bubble"
    COMBO = "combo"
    STACKED_BAR = "stackedBar"
    PERCENT_STACKED_BAR = "percentStackedBar"
    STACKED_AREA = "stackedArea"
    PERCENT_STACKED_AREA = "percentStackedArea"
    UNKNOWN = "unknown"


class ConditionalFormatType(str, Enum):
    DATA_BAR = "dataBar"
    COLOR_SCALE = "colorScale"
    ICON_SET = "iconSet"
    HIGHLIGHT_CELL = "highlightCell"
    OTHER = "other"


# =============================================================================
# STYLES
# =============================================================================

class NumberFormat(BaseModel):
    """Heuristic classification of a number format pattern."""
    pattern: str
    decimal_places: int = 0
    is_percent: bool = False
    is_currency: bool = False
    is_scientific: bool = False
    has_thousands_separator: bool = False
    is_date_time: bool = False
    has_negative_format: bool = False
    format_type: Optional[str] = None  # "number", "percent", "date", ... when known


class BorderSide(BaseModel):
    """Border on one edge of a cell."""
    style: int  # 1 thin ... 13 slantDashDot
    color: str = "#000000"


class CellStyle(BaseModel):
    """Optional style bag; unset fields are omitted from output."""
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    underline: Optional[bool] = None
    strike: Optional[bool] = None
    font_size: Optional[float] = None
    font_name: Optional[str] = None
    font_color: Optional[str] = None  # "#RRGGBB"
    background_color: Optional[str] = None  # "#RRGGBB"
    horizontal_align: Optional[HorizontalAlign] = None
    vertical_align: Optional[VerticalAlign] = None
    wrap: Optional[bool] = None
    border_top: Optional[BorderSide] = None
    border_bottom: Optional[BorderSide] = None
    border_left: Optional[BorderSide] = None
    border_right: Optional[BorderSide] = None
    number_format: Optional[NumberFormat] = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class RichTextRun(BaseModel):
    """A styled span of a cell's concatenated text."""
    start: int
    end: int
    style: CellStyle


class Hyperlink(BaseModel):
    url: str
    text: str = ""


# =============================================================================
# SHEET STRUCTURE
# =============================================================================

class Cell(BaseModel):
    """A single populated cell.

    A cell only exists when it carries a value, a formula or a style.
    """
    value: Optional[Union[bool, int, float, str]] = None
    value_type: Optional[ValueType] = None  # Present only when value is present
    formula: Optional[str] = None  # Always starts with "="
    rich_text: Optional[List[RichTextRun]] = None
    hyperlink: Optional[Hyperlink] = None
    style: Optional[CellStyle] = None


class MergeRegion(BaseModel):
    """Merged block, 0-based and inclusive."""
    start_row: int
    end_row: int
    start_column: int
    end_column: int


class Freeze(BaseModel):
    start_row: int = 0
    start_column: int = 0


class RowInfo(BaseModel):
    height: Optional[float] = None
    hidden: bool = False


class ColumnInfo(BaseModel):
    width: Optional[float] = None  # Pixels
    hidden: bool = False


class DataValidation(BaseModel):
    """Data validation rule (dropdowns, input constraints)."""
    ranges: List[str]
    type: Optional[str] = None  # "list", "whole", "decimal", "date", ...
    operator: Optional[str] = None
    formula1: Optional[str] = None
    formula2: Optional[str] = None
    allow_blank: bool = False
    show_error: bool = False
    error_title: Optional[str] = None
    error: Optional[str] = None
    prompt_title: Optional[str] = None
    prompt: Optional[str] = None


class Sheet(BaseModel):
    """One sheet of the snapshot."""
    id: str
    name: str
    row_count: int
    column_count: int
    default_row_height: float = 24
    default_column_width: float = 73
    hidden: bool = False
    freeze: Optional[Freeze] = None
    cell_data: Dict[int, Dict[int, Cell]] = {}  # row -> column -> cell
    row_data: Dict[int, RowInfo] = {}
    column_data: Dict[int, ColumnInfo] = {}
    merges: List[MergeRegion] = []
    data_validations: List[DataValidation] = []

    def get_cell(self, row: int, column: int) -> Optional[Cell]:
        return self.cell_data.get(row, {}).get(column)


class Snapshot(BaseModel):
    """Root of the canonical snapshot."""
    sheet_order: List[str] = []
    sheets: Dict[str, Sheet] = {}

    def get_sheet_by_name(self, name: str) -> Optional[Sheet]:
        """Find a sheet by its display name."""
        for sheet_id in self.sheet_order:
            sheet = self.sheets[sheet_id]
            if sheet.name == name:
                return sheet
        return None


# =============================================================================
# SIDE COLLECTIONS
# =============================================================================

class AnchorPosition(BaseModel):
    """Cell-relative position; offsets are pixels."""
    row: int
    column: int
    row_offset: int = 0
    column_offset: int = 0


class Size(BaseModel):
    width: int
    height: int


class ImportedImage(BaseModel):
    id: str
    sheet_id: str
    image_type: ImageType
    source: str  # data URI
    title: str
    position: AnchorPosition
    size: Size


class ImportedConditionalFormat(BaseModel):
    id: str
    sheet_id: str
    ranges: List[str]
    rule_type: ConditionalFormatType
    config: Dict[str, Any] = {}


class ImportedFilter(BaseModel):
    range: str


class SortCondition(BaseModel):
    column: int  # Relative to the sort range's first column
    ascending: bool = True


class ImportedSort(BaseModel):
    range: str
    conditions: List[SortCondition]


class ImportedChart(BaseModel):
    id: str
    sheet_id: str
    sheet_name: str
    chart_type: ChartType = ChartType.UNKNOWN
    data_range: Optional[str] = None  # "A1:D6", no sheet qualifier
    data_sheet_name: Optional[str] = None
    position: AnchorPosition
    size: Size
    title: Optional[str] = None


class PivotSourceRange(BaseModel):
    sheet_name: str
    sheet_id: Optional[str] = None
    start_row: int
    start_column: int
    end_row: int
    end_column: int


class PivotAnchor(BaseModel):
    row: int
    col: int


class PivotOccupiedRange(BaseModel):
    start_row: int
    start_column: int
    end_row: int
    end_column: int


class PivotFields(BaseModel):
    """Field roles as 0-based source column indices."""
    row_fields: List[int] = []
    col_fields: List[int] = []
    value_fields: List[int] = []
    filter_fields: List[int] = []


class ImportedPivotTable(BaseModel):
    id: str
    sheet_id: str
    sheet_name: str
    source_range: PivotSourceRange
    anchor_cell: PivotAnchor
    occupied_range: Optional[PivotOccupiedRange] = None
    fields: PivotFields = Field(default_factory=PivotFields)
    name: Optional[str] = None


class ImportResult(BaseModel):
    """Everything one import call produces."""
    snapshot: Snapshot
    images: Dict[str, List[ImportedImage]] = {}  # sheet id -> images
    conditional_formats: Dict[str, List[ImportedConditionalFormat]] = {}
    filters: Dict[str, ImportedFilter] = {}
    sorts: Dict[str, ImportedSort] = {}
    charts: Dict[str, List[ImportedChart]] = {}
    pivot_tables: List[ImportedPivotTable] = []
    report: Dict[str, Any] = {}
