"""Sort state extraction from worksheet XML.

openpyxl keeps only the auto filter's sort state, so the worksheet parts are
read directly: the first ``sortState`` anywhere in a sheet wins.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional
from xml.etree import ElementTree as ET

from .package import PackageReader, qn
from .references import leading_column_index
from .registry import SheetRegistry
from .report import Extracted, ImportReport, Outcome, Skipped
from .schemas import ImportedSort, SortCondition

logger = logging.getLogger(__name__)


def parse_sort_state(sheet_root: ET.Element, part: str) -> Optional[Outcome]:
    """ImportedSort from a worksheet root; None when the sheet has no usable sort."""
    state = sheet_root.find(f".//{qn('main', 'sortState')}")
    if state is None or not state.get("ref"):
        return None
    sort_range = state.get("ref").replace("$", "")
    try:
        start_column = leading_column_index(sort_range)
    except ValueError as e:
        return Skipped("sort", "malformed", f"{part}: bad sort range {sort_range!r}: {e}")

    conditions = []
    for condition in state.findall(qn("main", "sortCondition")):
        ref = (condition.get("ref") or "").replace("$", "")
        try:
            column = leading_column_index(ref)
        except ValueError:
            logger.debug(f"[SORT] {part}: ignoring condition with ref {ref!r}")
            continue
        conditions.append(SortCondition(
            column=column - start_column,
            ascending=condition.get("descending") not in ("1", "true"),
        ))

    if not conditions:
        return None
    return Extracted(ImportedSort(range=sort_range, conditions=conditions))


def extract_sorts(
    package: PackageReader,
    registry: SheetRegistry,
    report: ImportReport,
) -> Dict[str, ImportedSort]:
    """Sort state of every sheet that has one, keyed by sheet id."""
    sorts: Dict[str, ImportedSort] = {}
    for sheet_name, sheet_part in package.sheet_parts():
        sheet_id = registry.id_for(sheet_name)
        if sheet_id is None:
            report.skip("sort", "unknown_sheet", f"Sheet {sheet_name!r} is not registered")
            continue
        root = package.read_xml(sheet_part)
        if root is None:
            continue
        outcome = parse_sort_state(root, sheet_part)
        if outcome is None:
            continue
        found = report.collect([outcome])
        if found:
            sorts[sheet_id] = found[0]
            logger.info(f"[SORT] {sheet_name}: {found[0].range} by {len(found[0].conditions)} keys")
    return sorts
