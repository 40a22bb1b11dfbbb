"""A1-style reference helpers.

Spreadsheet addresses are 1-based; the snapshot uses 0-based indices.
Helpers suffixed ``_index`` return 0-based values.
"""
from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Tuple, Union

CELL_REF_RE = re.compile(r"^\$?([A-Za-z]+)\$?(\d+)$")


def col_letter_to_index(col: str) -> int:
    """Convert column letter(s) to 1-indexed number. A=1, B=2, ..., Z=26, AA=27."""
    result = 0
    for char in col.upper():
        result = result * 26 + (ord(char) - ord("A") + 1)
    return result


def col_index_to_letter(index: int) -> str:
    """Convert 1-indexed column number to letter(s). 1=A, 2=B, ..., 27=AA."""
    result = ""
    while index > 0:
        index -= 1
        result = chr(ord("A") + (index % 26)) + result
        index //= 26
    return result


def parse_cell_ref(ref: str) -> Tuple[int, int]:
    """Parse 'B3' or '$B$3' into 0-based (row, column)."""
    match = CELL_REF_RE.match(ref.strip())
    if not match:
        raise ValueError(f"Invalid cell reference: {ref}")
    return int(match.group(2)) - 1, col_letter_to_index(match.group(1)) - 1


def parse_range_ref(ref: str) -> Tuple[int, int, int, int]:
    """Parse 'B2:F6' into 0-based (start_row, start_col, end_row, end_col).

    A single cell is treated as a one-cell range.
    """
    parts = ref.split(":")
    if len(parts) > 2:
        raise ValueError(f"Invalid range reference: {ref}")
    start_row, start_col = parse_cell_ref(parts[0])
    if len(parts) == 1:
        return start_row, start_col, start_row, start_col
    end_row, end_col = parse_cell_ref(parts[1])
    return start_row, start_col, end_row, end_col


def cell_ref(row: int, column: int) -> str:
    """0-based (row, column) -> 'A1'."""
    return f"{col_index_to_letter(column + 1)}{row + 1}"


def leading_column_index(ref: str) -> int:
    """0-based column of the first cell in a cell or range reference."""
    return parse_cell_ref(ref.split(":")[0])[1]


def _endpoint_to_a1(endpoint: Union[str, Mapping[str, Any]]) -> str:
    if isinstance(endpoint, str):
        return endpoint.replace("$", "")
    # Structured endpoints are 1-based {row, column}
    return f"{col_index_to_letter(int(endpoint['column']))}{int(endpoint['row'])}"


def normalize_filter_range(ref: Union[str, Mapping[str, Any], None]) -> Optional[str]:
    """Normalize an auto-filter reference into a single 'A1:D14' string.

    Accepts an A1 string, or ``{"from": ..., "to": ...}`` where each end is
    an A1 string or a 1-based ``{"row": r, "column": c}`` mapping.
    """
    if not ref:
        return None
    if isinstance(ref, str):
        return ref.replace("$", "")
    start = ref.get("from")
    end = ref.get("to")
    if start is None or end is None:
        return None
    return f"{_endpoint_to_a1(start)}:{_endpoint_to_a1(end)}"
