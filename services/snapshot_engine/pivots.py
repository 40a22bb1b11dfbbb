"""Pivot table extraction.

Two joins: workbook pivotCache (cacheId -> r:id -> cache definition) gives
the source range; each sheet's pivotTable parts give the location and the
field roles, joined to the cache by cacheId.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

from .package import R_ID, REL_PIVOT_TABLE, PackageReader, qn
from .references import parse_range_ref
from .registry import SheetRegistry, new_id
from .report import Extracted, ImportReport, Outcome, Skipped
from .schemas import (
    ImportedPivotTable,
    PivotAnchor,
    PivotFields,
    PivotOccupiedRange,
    PivotSourceRange,
)

logger = logging.getLogger(__name__)

# Every page (filter) field renders as a label row plus a value row above the table
ROWS_PER_FILTER_FIELD = 2
# x="-2" in rowFields/colFields stands for the "Values" pseudo-field
VALUES_FIELD_INDEX = -2


@dataclass(frozen=True)
class CacheSource:
    sheet_name: str
    start_row: int
    start_column: int
    end_row: int
    end_column: int


# =============================================================================
# CACHE DEFINITIONS
# =============================================================================

def _cache_source(root: ET.Element) -> Optional[CacheSource]:
    source = root.find(f"{qn('main', 'cacheSource')}/{qn('main', 'worksheetSource')}")
    if source is None:
        return None
    ref, sheet = source.get("ref"), source.get("sheet")
    if not ref or not sheet:
        return None
    try:
        start_row, start_col, end_row, end_col = parse_range_ref(ref)
    except ValueError:
        return None
    return CacheSource(sheet, start_row, start_col, end_row, end_col)


def build_cache_map(package: PackageReader, report: ImportReport) -> Dict[str, CacheSource]:
    """cacheId -> worksheet source of the pivot cache."""
    workbook = package.workbook_part()
    root = package.read_xml(workbook)
    if root is None:
        return {}
    caches: Dict[str, CacheSource] = {}
    for cache in root.iter(qn("main", "pivotCache")):
        cache_id = cache.get("cacheId")
        cache_part = package.target_of(workbook, cache.get(R_ID))
        if cache_id is None or cache_part is None:
            report.skip("pivot", "missing_part", f"Pivot cache {cache_id!r} has no definition part")
            continue
        definition = package.read_xml(cache_part)
        source = _cache_source(definition) if definition is not None else None
        if source is None:
            report.skip("pivot", "unsupported_source", f"Pivot cache {cache_id} in {cache_part} has no worksheet source")
            continue
        caches[cache_id] = source
    return caches


# =============================================================================
# PIVOT TABLE DEFINITIONS
# =============================================================================

def _field_indexes(root: ET.Element, container: str, item: str, attr: str) -> List[int]:
    parent = root.find(qn("main", container))
    if parent is None:
        return []
    indexes = []
    for el in parent.findall(qn("main", item)):
        try:
            value = int(el.get(attr, ""))
        except ValueError:
            continue
        if value >= 0:
            indexes.append(value)
    return indexes


def pivot_fields(root: ET.Element) -> PivotFields:
    return PivotFields(
        row_fields=_field_indexes(root, "rowFields", "field", "x"),
        col_fields=_field_indexes(root, "colFields", "field", "x"),
        value_fields=_field_indexes(root, "dataFields", "dataField", "fld"),
        filter_fields=_field_indexes(root, "pageFields", "pageField", "fld"),
    )


def shift_for_filters(row: int, filter_count: int) -> int:
    """Move a row up to make room for the filter area, clamped at 0."""
    return max(0, row - ROWS_PER_FILTER_FIELD * filter_count)


def parse_location(ref: Optional[str]) -> Tuple[PivotAnchor, Optional[PivotOccupiedRange]]:
    """Anchor cell and occupied range of a location ref; single cells have no range."""
    if not ref:
        return PivotAnchor(row=0, col=0), None
    start_row, start_col, end_row, end_col = parse_range_ref(ref)
    anchor = PivotAnchor(row=start_row, col=start_col)
    if ":" not in ref:
        return anchor, None
    return anchor, PivotOccupiedRange(
        start_row=start_row, start_column=start_col, end_row=end_row, end_column=end_col,
    )


def parse_pivot_table(
    root: ET.Element,
    caches: Dict[str, CacheSource],
    registry: SheetRegistry,
    sheet_id: str,
    sheet_name: str,
    part: str,
) -> Outcome:
    """One pivotTableDefinition -> ImportedPivotTable or a skip reason."""
    cache_id = root.get("cacheId", "1")
    cache = caches.get(cache_id)
    if cache is None:
        return Skipped("pivot", "missing_cache", f"{part}: no cache for cacheId={cache_id}")

    location = root.find(qn("main", "location"))
    try:
        anchor, occupied = parse_location(location.get("ref") if location is not None else None)
    except ValueError as e:
        return Skipped("pivot", "malformed", f"{part}: {e}")

    fields = pivot_fields(root)
    filter_count = len(fields.filter_fields)
    if filter_count:
        anchor.row = shift_for_filters(anchor.row, filter_count)
        if occupied is not None:
            occupied.start_row = shift_for_filters(occupied.start_row, filter_count)

    source_sheet_id = registry.id_for(cache.sheet_name)
    if source_sheet_id is None:
        logger.warning(f"[PIVOT] {part}: source sheet {cache.sheet_name!r} is not in the workbook")

    return Extracted(ImportedPivotTable(
        id=new_id("pivot"),
        sheet_id=sheet_id,
        sheet_name=sheet_name,
        source_range=PivotSourceRange(
            sheet_name=cache.sheet_name,
            sheet_id=source_sheet_id,
            start_row=cache.start_row,
            start_column=cache.start_column,
            end_row=cache.end_row,
            end_column=cache.end_column,
        ),
        anchor_cell=anchor,
        occupied_range=occupied,
        fields=fields,
        name=root.get("name"),
    ))


def extract_pivot_tables(
    package: PackageReader,
    registry: SheetRegistry,
    report: ImportReport,
) -> List[ImportedPivotTable]:
    """Every pivot table of the workbook as a flat list."""
    caches = build_cache_map(package, report)
    pivots: List[ImportedPivotTable] = []
    for sheet_name, sheet_part in package.sheet_parts():
        rels = package.related_parts(sheet_part, REL_PIVOT_TABLE)
        if not rels:
            continue
        sheet_id = registry.id_for(sheet_name)
        if sheet_id is None:
            report.skip("pivot", "unknown_sheet", f"Sheet {sheet_name!r} is not registered")
            continue
        for rel in rels:
            root = package.read_xml(rel.target)
            if root is None:
                report.skip("pivot", "missing_part", f"Pivot table part {rel.target} is missing or unreadable")
                continue
            outcome = parse_pivot_table(root, caches, registry, sheet_id, sheet_name, rel.target)
            pivots.extend(report.collect([outcome]))
    logger.info(f"[PIVOT] Extracted {len(pivots)} pivot tables")
    return pivots
