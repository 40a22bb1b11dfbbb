"""Snapshot Engine - spreadsheet files to a canonical snapshot.

This module handles:
1. Mapping workbook cells, styles, merges, rows, columns and freeze panes (xlsx via openpyxl, xls via xlrd)
2. Extracting charts, pivot tables and sort state from the OOXML package
3. Resolving theme/indexed colors, number formats and Excel date serials
"""

from .schemas import (
    # Core
    Snapshot,
    Sheet,
    Cell,
    CellStyle,
    BorderSide,
    NumberFormat,
    RichTextRun,
    Hyperlink,
    MergeRegion,
    Freeze,
    RowInfo,
    ColumnInfo,
    DataValidation,
    ValueType,
    HorizontalAlign,
    VerticalAlign,
    # Auxiliary artifacts
    ImportResult,
    ImportedImage,
    ImportedConditionalFormat,
    ImportedFilter,
    ImportedSort,
    SortCondition,
    ImportedChart,
    ChartType,
    ImportedPivotTable,
)
from .config import ImportSettings, get_import_settings, reload_import_settings
from .errors import (
    ErrorCode,
    SnapshotImportError,
    UnsupportedFormatError,
    FileTooLargeError,
    WorkbookLoadError,
)
from .registry import SheetRegistry
from .report import ImportReport, Extracted, Skipped
from .colors import apply_tint, resolve_color
from .number_formats import is_date_format, parse_number_format
from .dates import excel_serial_to_date, date_to_excel_serial, format_date_by_pattern, parse_date_string
from .importer import import_file, file_type_from_filename

__all__ = [
    # Core schemas
    "Snapshot",
    "Sheet",
    "Cell",
    "CellStyle",
    "BorderSide",
    "NumberFormat",
    "RichTextRun",
    "Hyperlink",
    "MergeRegion",
    "Freeze",
    "RowInfo",
    "ColumnInfo",
    "DataValidation",
    "ValueType",
    "HorizontalAlign",
    "VerticalAlign",
    # Artifact schemas
    "ImportResult",
    "ImportedImage",
    "ImportedConditionalFormat",
    "ImportedFilter",
    "ImportedSort",
    "SortCondition",
    "ImportedChart",
    "ChartType",
    "ImportedPivotTable",
    # Configuration and errors
    "ImportSettings",
    "get_import_settings",
    "reload_import_settings",
    "ErrorCode",
    "SnapshotImportError",
    "UnsupportedFormatError",
    "FileTooLargeError",
    "WorkbookLoadError",
    # Registry and report
    "SheetRegistry",
    "ImportReport",
    "Extracted",
    "Skipped",
    # Resolvers
    "apply_tint",
    "resolve_color",
    "is_date_format",
    "parse_number_format",
    "excel_serial_to_date",
    "date_to_excel_serial",
    "format_date_by_pattern",
    "parse_date_string",
    # Functions
    "import_file",
    "file_type_from_filename",
]
