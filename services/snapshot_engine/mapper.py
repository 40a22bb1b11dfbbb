"""Workbook document model -> canonical snapshot sheets.

The mapper walks an openpyxl workbook sheet by sheet, in document order,
registering each sheet id as it goes. Per-sheet output is returned as a
``SheetMapping`` accumulator and folded into a ``WorkbookMapping``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from openpyxl.chartsheet import Chartsheet
from openpyxl.utils import column_index_from_string

from .cell_values import (
    FormulaContent,
    HyperlinkContent,
    MergedContent,
    RichTextContent,
    SourceContent,
    content_from_openpyxl,
    hyperlink_url,
    normalize_formula,
    rich_text_runs,
    safe_value,
    value_type_of,
)
from .conditional_formats import convert_conditional_formats, split_ranges
from .config import ImportSettings
from .images import cell_image, dispimg_id, extract_floating_images
from .package import PackageReader
from .references import normalize_filter_range
from .registry import SheetRegistry
from .report import ImportReport
from .schemas import (
    Cell,
    CellStyle,
    ColumnInfo,
    DataValidation,
    Freeze,
    Hyperlink,
    ImportedConditionalFormat,
    ImportedFilter,
    ImportedImage,
    MergeRegion,
    RowInfo,
    Sheet,
    Snapshot,
)
from .styles import style_from_openpyxl

logger = logging.getLogger(__name__)

CellData = Dict[int, Dict[int, Cell]]

# Anchor border attribute -> which perimeter cells receive it
_MERGE_EDGES = ("border_top", "border_bottom", "border_left", "border_right")


# =============================================================================
# ACCUMULATORS
# =============================================================================

@dataclass
class SheetMapping:
    """Everything produced for one sheet."""
    sheet: Sheet
    images: List[ImportedImage] = field(default_factory=list)
    conditional_formats: List[ImportedConditionalFormat] = field(default_factory=list)
    filter: Optional[ImportedFilter] = None


@dataclass
class WorkbookMapping:
    """Sheets in order plus the per-sheet side collections."""
    snapshot: Snapshot = field(default_factory=Snapshot)
    images: Dict[str, List[ImportedImage]] = field(default_factory=dict)
    conditional_formats: Dict[str, List[ImportedConditionalFormat]] = field(default_factory=dict)
    filters: Dict[str, ImportedFilter] = field(default_factory=dict)

    def add(self, mapping: SheetMapping) -> None:
        sheet = mapping.sheet
        self.snapshot.sheet_order.append(sheet.id)
        self.snapshot.sheets[sheet.id] = sheet
        if mapping.images:
            self.images[sheet.id] = mapping.images
        if mapping.conditional_formats:
            self.conditional_formats[sheet.id] = mapping.conditional_formats
        if mapping.filter is not None:
            self.filters[sheet.id] = mapping.filter


# =============================================================================
# SHARED CELL HELPERS
# =============================================================================

def build_cell(
    content: SourceContent,
    style: Optional[CellStyle],
    number_format: Optional[str],
    link: Optional[str] = None,
) -> Optional[Cell]:
    """Snapshot cell for a classified source cell; None when it must be omitted.

    ``link`` is the hyperlink target of a cell whose content is not itself a
    HyperlinkContent (a linked number or formula, for instance).
    """
    formula = normalize_formula(content.formula) if isinstance(content, FormulaContent) else None
    value = None if isinstance(content, MergedContent) else safe_value(content, number_format)
    if value is None and formula is None:
        return Cell(style=style) if style is not None else None

    fields: Dict[str, Any] = {"formula": formula, "style": style}
    if value is not None:
        fields["value"] = value
        fields["value_type"] = value_type_of(value)
    if isinstance(content, RichTextContent):
        runs = rich_text_runs(content)
        if runs:
            fields["rich_text"] = runs
    if isinstance(content, HyperlinkContent):
        fields["hyperlink"] = Hyperlink(url=content.url, text=content.text)
    elif link and not isinstance(content, MergedContent):
        fields["hyperlink"] = Hyperlink(url=link, text="" if value is None else str(value))
    return Cell(**fields)


def put_cell(cell_data: CellData, row: int, column: int, cell: Cell) -> None:
    cell_data.setdefault(row, {})[column] = cell


def _perimeter(region: MergeRegion, edge: str) -> Iterable[Tuple[int, int]]:
    columns = range(region.start_column, region.end_column + 1)
    rows = range(region.start_row, region.end_row + 1)
    if edge == "border_top":
        return ((region.start_row, c) for c in columns)
    if edge == "border_bottom":
        return ((region.end_row, c) for c in columns)
    if edge == "border_left":
        return ((r, region.start_column) for r in rows)
    return ((r, region.end_column) for r in rows)


def propagate_merge_borders(cell_data: CellData, merges: List[MergeRegion]) -> None:
    """Copy each merge anchor's borders onto the matching outer edge of the region."""
    for region in merges:
        anchor = cell_data.get(region.start_row, {}).get(region.start_column)
        if anchor is None or anchor.style is None:
            continue
        for edge in _MERGE_EDGES:
            side = getattr(anchor.style, edge)
            if side is None:
                continue
            for row, column in _perimeter(region, edge):
                target = cell_data.get(row, {}).get(column)
                if target is None:
                    target = Cell()
                    put_cell(cell_data, row, column, target)
                if target.style is None:
                    target.style = CellStyle()
                setattr(target.style, edge, side.model_copy())


def sheet_extent(cell_data: CellData, merges: List[MergeRegion]) -> Tuple[int, int]:
    """(highest populated row, highest populated column), -1 when empty."""
    max_row = max(cell_data.keys(), default=-1)
    max_col = max((c for row in cell_data.values() for c in row.keys()), default=-1)
    for region in merges:
        max_row = max(max_row, region.end_row)
        max_col = max(max_col, region.end_column)
    return max_row, max_col


def new_sheet(
    sheet_id: str,
    name: str,
    settings: ImportSettings,
    hidden: bool = False,
    cell_data: Optional[CellData] = None,
    merges: Optional[List[MergeRegion]] = None,
    **extra: Any,
) -> Sheet:
    """Sheet record with row/column counts floored at the configured minimum."""
    cell_data = cell_data or {}
    merges = merges or []
    max_row, max_col = sheet_extent(cell_data, merges)
    return Sheet(
        id=sheet_id,
        name=name,
        row_count=max(settings.min_row_count, max_row + 1),
        column_count=max(settings.min_column_count, max_col + 1),
        default_row_height=settings.default_row_height,
        default_column_width=settings.default_column_width,
        hidden=hidden,
        cell_data=cell_data,
        merges=merges,
        **extra,
    )


# =============================================================================
# OPENPYXL SHEET PARTS
# =============================================================================

def _merges(ws: Any) -> List[MergeRegion]:
    return [
        MergeRegion(
            start_row=rng.min_row - 1,
            end_row=rng.max_row - 1,
            start_column=rng.min_col - 1,
            end_column=rng.max_col - 1,
        )
        for rng in ws.merged_cells.ranges
    ]


def _freeze(ws: Any) -> Optional[Freeze]:
    views = ws.views.sheetView
    if not views:
        return None
    pane = views[0].pane
    if pane is None or pane.state != "frozen":
        return None
    return Freeze(start_row=int(pane.ySplit or 0), start_column=int(pane.xSplit or 0))


def _rows(ws: Any) -> Dict[int, RowInfo]:
    rows: Dict[int, RowInfo] = {}
    for index, dim in ws.row_dimensions.items():
        if dim.ht is None and not dim.hidden:
            continue
        rows[index - 1] = RowInfo(height=dim.ht, hidden=bool(dim.hidden))
    return rows


def _columns(ws: Any, settings: ImportSettings) -> Dict[int, ColumnInfo]:
    columns: Dict[int, ColumnInfo] = {}
    last_column = max(ws.max_column, settings.min_column_count)
    for key, dim in ws.column_dimensions.items():
        width = dim.width * settings.column_width_factor if dim.customWidth and dim.width else None
        if width is None and not dim.hidden:
            continue
        first = dim.min or column_index_from_string(key)
        last = min(dim.max or first, last_column)
        for index in range(first, last + 1):
            columns[index - 1] = ColumnInfo(width=width, hidden=bool(dim.hidden))
    return columns


def _data_validations(ws: Any) -> List[DataValidation]:
    rules = []
    for dv in ws.data_validations.dataValidation:
        rules.append(DataValidation(
            ranges=split_ranges(dv.sqref),
            type=dv.type,
            operator=dv.operator,
            formula1=dv.formula1,
            formula2=dv.formula2,
            allow_blank=bool(dv.allow_blank),
            show_error=bool(dv.showErrorMessage),
            error_title=dv.errorTitle,
            error=dv.error,
            prompt_title=dv.promptTitle,
            prompt=dv.prompt,
        ))
    return rules


def _map_cells(
    ws: Any,
    values_ws: Any,
    sheet_id: str,
    cell_images: Dict[str, Tuple[bytes, str]],
    report: ImportReport,
) -> Tuple[CellData, List[ImportedImage]]:
    cell_data: CellData = {}
    images: List[ImportedImage] = []
    # Only cells present in the source; iter_rows() would fill the used rectangle
    for (row, column), source in sorted(ws._cells.items()):
        row_index, column_index = row - 1, column - 1
        try:
            cached = None
            if values_ws is not None and source.data_type == "f":
                cached = values_ws.cell(row=row, column=column).value
            content = content_from_openpyxl(source, cached)

            image_id = dispimg_id(content.formula) if isinstance(content, FormulaContent) else None
            if image_id is not None:
                outcome = cell_image(image_id, cell_images, sheet_id, row_index, column_index)
                images.extend(report.collect([outcome]))
                continue

            cell = build_cell(content, style_from_openpyxl(source), source.number_format, hyperlink_url(source))
        except (TypeError, ValueError, AttributeError) as e:
            report.skip("map", "malformed_cell", f"{ws.title}!{source.coordinate}: {e}")
            continue
        if cell is not None:
            put_cell(cell_data, row_index, column_index, cell)
    return cell_data, images


def map_sheet(
    ws: Any,
    values_ws: Any,
    sheet_id: str,
    settings: ImportSettings,
    report: ImportReport,
    package: Optional[PackageReader] = None,
    sheet_part: Optional[str] = None,
    cell_images: Optional[Dict[str, Tuple[bytes, str]]] = None,
    include_images: bool = True,
) -> SheetMapping:
    """Map a single openpyxl worksheet."""
    hidden = ws.sheet_state in ("hidden", "veryHidden")
    if isinstance(ws, Chartsheet):
        return SheetMapping(new_sheet(sheet_id, ws.title, settings, hidden=hidden))

    cell_data, images = _map_cells(ws, values_ws, sheet_id, cell_images or {}, report)
    merges = _merges(ws)
    propagate_merge_borders(cell_data, merges)

    sheet = new_sheet(
        sheet_id,
        ws.title,
        settings,
        hidden=hidden,
        cell_data=cell_data,
        merges=merges,
        freeze=_freeze(ws),
        row_data=_rows(ws),
        column_data=_columns(ws, settings),
        data_validations=_data_validations(ws),
    )
    mapping = SheetMapping(sheet, images=images)

    if include_images and package is not None and sheet_part is not None:
        outcomes = extract_floating_images(
            package, sheet_part, sheet_id,
            settings.default_column_width, settings.default_row_height,
        )
        mapping.images.extend(report.collect(outcomes))

    mapping.conditional_formats = convert_conditional_formats(ws, sheet_id)

    filter_range = normalize_filter_range(ws.auto_filter.ref)
    if filter_range:
        mapping.filter = ImportedFilter(range=filter_range)

    logger.info(
        f"[MAP] {ws.title}: {sum(len(r) for r in cell_data.values())} cells, "
        f"{len(merges)} merges, {len(mapping.images)} images"
    )
    return mapping


def map_workbook(
    workbook: Any,
    values_workbook: Any,
    registry: SheetRegistry,
    report: ImportReport,
    settings: ImportSettings,
    package: Optional[PackageReader] = None,
    include_images: bool = True,
) -> WorkbookMapping:
    """Map every sheet of an openpyxl workbook, in order, including empty ones."""
    result = WorkbookMapping()
    sheet_parts = dict(package.sheet_parts()) if package is not None else {}
    cell_images = package.cell_images() if package is not None else {}

    for name in workbook.sheetnames:
        ws = workbook[name]
        sheet_id = registry.register(name)
        values_ws = values_workbook[name] if values_workbook is not None and name in values_workbook.sheetnames else None
        try:
            mapping = map_sheet(
                ws, values_ws, sheet_id, settings, report,
                package=package,
                sheet_part=sheet_parts.get(name),
                cell_images=cell_images,
                include_images=include_images,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            report.skip("map", "malformed_sheet", f"Sheet {name!r} could not be mapped: {e}")
            mapping = SheetMapping(new_sheet(sheet_id, name, settings))
        result.add(mapping)
    return result
