"""Chart extraction from DrawingML chart parts.

For every sheet: sheet rels -> drawing part -> anchors holding a c:chart
reference -> drawing rels -> chart part. Pivot charts are left to the pivot
table consumer.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

from .images import emu_to_px
from .package import R_ID, PackageReader, local_name, qn
from .references import col_index_to_letter, col_letter_to_index
from .registry import SheetRegistry, new_id
from .report import Extracted, ImportReport, Outcome, Skipped
from .schemas import AnchorPosition, ChartType, ImportedChart, Size

logger = logging.getLogger(__name__)

DEFAULT_CHART_WIDTH = 600
DEFAULT_CHART_HEIGHT = 400

CHART_RANGE_RE = re.compile(r"^(.+?)!\$?([A-Z]+)\$?(\d+)(?::\$?([A-Z]+)\$?(\d+))?$")

# Plot element -> chart family, checked in this order
_FAMILIES: Tuple[Tuple[Tuple[str, ...], ChartType], ...] = (
    (("barChart", "bar3DChart"), ChartType.COLUMN),
    (("lineChart", "line3DChart"), ChartType.LINE),
    (("pieChart", "pie3DChart"), ChartType.PIE),
    (("doughnutChart",), ChartType.DOUGHNUT),
    (("areaChart", "area3DChart"), ChartType.AREA),
    (("scatterChart",), ChartType.SCATTER),
    (("radarChart",), ChartType.RADAR),
    (("bubbleChart",), ChartType.BUBBLE),
    (("ofPieChart",), ChartType.PIE),
    (("surfaceChart", "surface3DChart"), ChartType.SCATTER),
    (("stockChart",), ChartType.COMBO),
)

_BAR_GROUPING = {
    "stacked": ChartType.STACKED_BAR,
    "percentStacked": ChartType.PERCENT_STACKED_BAR,
}

_AREA_GROUPING = {
    "stacked": ChartType.STACKED_AREA,
    "percentStacked": ChartType.PERCENT_STACKED_AREA,
}


# =============================================================================
# CLASSIFICATION
# =============================================================================

def is_pivot_chart(chart_root: ET.Element) -> bool:
    return any(local_name(el.tag) == "pivotSource" for el in chart_root.iter())


def _child_val(parent: ET.Element, tag: str) -> Optional[str]:
    el = parent.find(qn("c", tag))
    return el.get("val") if el is not None else None


def classify_chart(chart_root: ET.Element) -> ChartType:
    """Chart family from the first plot element present."""
    plots: Dict[str, ET.Element] = {}
    for el in chart_root.iter():
        plots.setdefault(local_name(el.tag), el)

    for tags, family in _FAMILIES:
        plot = next((plots[tag] for tag in tags if tag in plots), None)
        if plot is None:
            continue
        if family is ChartType.COLUMN:
            if _child_val(plot, "barDir") != "bar":
                return ChartType.COLUMN
            return _BAR_GROUPING.get(_child_val(plot, "grouping") or "clustered", ChartType.BAR)
        if family is ChartType.AREA:
            return _AREA_GROUPING.get(_child_val(plot, "grouping") or "standard", ChartType.AREA)
        return family
    return ChartType.UNKNOWN


def chart_title(chart_root: ET.Element) -> Optional[str]:
    title = chart_root.find(f".//{qn('c', 'title')}")
    if title is None:
        return None
    text = "".join(t.text or "" for t in title.iter(qn("a", "t")))
    return text or None


# =============================================================================
# DATA RANGE
# =============================================================================

def parse_chart_range(ref: str) -> Optional[Tuple[str, int, int, int, int]]:
    """'Sheet1!$A$1:$B$6' -> (sheet, start_col, start_row, end_col, end_row), 1-based."""
    match = CHART_RANGE_RE.match(ref.strip())
    if not match:
        return None
    sheet = match.group(1).strip()
    if len(sheet) >= 2 and sheet[0] == sheet[-1] == "'":
        sheet = sheet[1:-1].replace("''", "'")
    start_col = col_letter_to_index(match.group(2))
    start_row = int(match.group(3))
    end_col = col_letter_to_index(match.group(4)) if match.group(4) else start_col
    end_row = int(match.group(5)) if match.group(5) else start_row
    return sheet, start_col, start_row, end_col, end_row


def merge_chart_ranges(refs: List[str]) -> Tuple[Optional[str], Optional[str]]:
    """Bounding rectangle of all parseable references, plus the first sheet name.

    Falls back to the first raw reference when none of them parse.
    """
    if not refs:
        return None, None
    parsed = [p for p in (parse_chart_range(ref) for ref in refs) if p is not None]
    if not parsed:
        return refs[0], None
    min_col = min(min(p[1], p[3]) for p in parsed)
    min_row = min(min(p[2], p[4]) for p in parsed)
    max_col = max(max(p[1], p[3]) for p in parsed)
    max_row = max(max(p[2], p[4]) for p in parsed)
    merged = f"{col_index_to_letter(min_col)}{min_row}:{col_index_to_letter(max_col)}{max_row}"
    return merged, parsed[0][0]


def chart_range_refs(chart_root: ET.Element) -> List[str]:
    """Every c:f formula that is a sheet-qualified absolute reference."""
    refs = []
    for f in chart_root.iter(qn("c", "f")):
        text = (f.text or "").strip()
        if "!" in text and "$" in text:
            refs.append(text)
    return refs


# =============================================================================
# ANCHORS
# =============================================================================

def _anchor_position(anchor: ET.Element) -> AnchorPosition:
    start = anchor.find(qn("xdr", "from"))

    def read(tag: str) -> str:
        el = start.find(qn("xdr", tag)) if start is not None else None
        return (el.text or "0").strip() if el is not None else "0"

    try:
        column, row = int(read("col")), int(read("row"))
    except ValueError:
        column, row = 0, 0
    return AnchorPosition(
        row=row,
        column=column,
        row_offset=emu_to_px(read("rowOff")),
        column_offset=emu_to_px(read("colOff")),
    )


def _anchor_size(anchor: ET.Element) -> Size:
    ext = anchor.find(qn("xdr", "ext"))
    if ext is None:
        ext = anchor.find(f".//{qn('a', 'ext')}")
    if ext is not None and ext.get("cx") and ext.get("cy"):
        width, height = emu_to_px(ext.get("cx")), emu_to_px(ext.get("cy"))
        if width > 0 and height > 0:
            return Size(width=width, height=height)
    return Size(width=DEFAULT_CHART_WIDTH, height=DEFAULT_CHART_HEIGHT)


def _chart_from_anchor(
    package: PackageReader,
    drawing_part: str,
    anchor: ET.Element,
    sheet_id: str,
    sheet_name: str,
) -> Optional[Outcome]:
    ref = anchor.find(f".//{qn('c', 'chart')}")
    if ref is None:
        return None
    chart_part = package.target_of(drawing_part, ref.get(R_ID))
    if chart_part is None:
        return Skipped("chart", "missing_part", f"Chart reference in {drawing_part} does not resolve")
    chart_root = package.read_xml(chart_part)
    if chart_root is None:
        return Skipped("chart", "missing_part", f"Chart part {chart_part} is missing or unreadable")
    if is_pivot_chart(chart_root):
        logger.info(f"[CHART] {chart_part} is a pivot chart, left to pivot handling")
        return None

    data_range, data_sheet = merge_chart_ranges(chart_range_refs(chart_root))
    return Extracted(ImportedChart(
        id=new_id("chart"),
        sheet_id=sheet_id,
        sheet_name=sheet_name,
        chart_type=classify_chart(chart_root),
        data_range=data_range,
        data_sheet_name=data_sheet,
        position=_anchor_position(anchor),
        size=_anchor_size(anchor),
        title=chart_title(chart_root),
    ))


def extract_sheet_charts(
    package: PackageReader,
    sheet_name: str,
    sheet_part: str,
    sheet_id: str,
) -> List[Outcome]:
    drawing_part = package.drawing_for(sheet_part)
    if drawing_part is None:
        return []
    root = package.read_xml(drawing_part)
    if root is None:
        return [Skipped("chart", "missing_part", f"Drawing {drawing_part} could not be read")]
    outcomes = []
    for anchor in root:
        if local_name(anchor.tag) not in ("twoCellAnchor", "oneCellAnchor"):
            continue
        outcome = _chart_from_anchor(package, drawing_part, anchor, sheet_id, sheet_name)
        if outcome is not None:
            outcomes.append(outcome)
    return outcomes


def extract_charts(
    package: PackageReader,
    registry: SheetRegistry,
    report: ImportReport,
) -> Dict[str, List[ImportedChart]]:
    """Charts of every sheet, keyed by sheet id."""
    charts: Dict[str, List[ImportedChart]] = {}
    for sheet_name, sheet_part in package.sheet_parts():
        sheet_id = registry.id_for(sheet_name)
        if sheet_id is None:
            report.skip("chart", "unknown_sheet", f"Sheet {sheet_name!r} is not registered")
            continue
        found = report.collect(extract_sheet_charts(package, sheet_name, sheet_part, sheet_id))
        if found:
            charts[sheet_id] = found
            logger.info(f"[CHART] {sheet_name}: {len(found)} charts")
    return charts
