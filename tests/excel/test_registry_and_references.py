"""Tests for the sheet id registry and A1 reference helpers."""

import sys
from pathlib import Path

import pytest

# Add project root to path (tests/excel/ -> tests/ -> project root)
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from services.snapshot_engine.registry import SheetRegistry, new_id
from services.snapshot_engine.references import (
    cell_ref,
    col_index_to_letter,
    col_letter_to_index,
    leading_column_index,
    normalize_filter_range,
    parse_cell_ref,
    parse_range_ref,
)


class TestSheetRegistry:
    """Sheet ids are issued once per name and resolvable three ways."""

    def test_register_issues_prefixed_unique_ids(self):
        registry = SheetRegistry()
        first = registry.register("Data")
        second = registry.register("Summary")

        assert first.startswith("sheet-")
        assert second.startswith("sheet-")
        assert first != second
        assert len(registry) == 2

    def test_register_is_idempotent_per_name(self):
        registry = SheetRegistry()
        sheet_id = registry.register("Data")

        assert registry.register("Data") == sheet_id
        assert len(registry) == 1

    def test_lookups(self):
        registry = SheetRegistry()
        ids = [registry.register(name) for name in ("A", "B", "C")]

        assert registry.id_for("B") == ids[1]
        assert registry.ordinal_for("C") == 2
        assert registry.id_at(0) == ids[0]
        assert registry.sheet_ids == ids
        assert "A" in registry

    def test_unknown_names_resolve_to_none(self):
        registry = SheetRegistry()
        registry.register("A")

        assert registry.id_for("Missing") is None
        assert registry.ordinal_for("Missing") is None
        assert registry.id_at(5) is None
        assert registry.id_at(-1) is None

    def test_registries_do_not_share_state(self):
        one, two = SheetRegistry(), SheetRegistry()
        one.register("Data")

        assert two.id_for("Data") is None
        assert two.register("Data") != one.id_for("Data")

    def test_new_id_prefix(self):
        assert new_id("chart").startswith("chart-")
        assert new_id("pivot") != new_id("pivot")


class TestReferences:
    """A1 parsing; snapshot indices are 0-based."""

    @pytest.mark.parametrize("letters,index", [("A", 1), ("Z", 26), ("AA", 27), ("AZ", 52), ("XFD", 16384)])
    def test_column_letters(self, letters, index):
        assert col_letter_to_index(letters) == index
        assert col_index_to_letter(index) == letters

    def test_parse_cell_ref(self):
        assert parse_cell_ref("A1") == (0, 0)
        assert parse_cell_ref("$C$7") == (6, 2)

    def test_parse_cell_ref_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_cell_ref("not a ref")

    def test_parse_range_ref(self):
        assert parse_range_ref("B2:F6") == (1, 1, 5, 5)
        assert parse_range_ref("D4") == (3, 3, 3, 3)

    def test_cell_ref(self):
        assert cell_ref(0, 0) == "A1"
        assert cell_ref(9, 27) == "AB10"

    def test_leading_column_index(self):
        assert leading_column_index("C1:C10") == 2
        assert leading_column_index("A5") == 0


class TestFilterRange:
    """Auto-filter references normalize to one A1 range string."""

    def test_plain_string(self):
        assert normalize_filter_range("A1:D14") == "A1:D14"

    def test_absolute_string(self):
        assert normalize_filter_range("$A$1:$D$14") == "A1:D14"

    def test_structured_a1_endpoints(self):
        assert normalize_filter_range({"from": "A1", "to": "D14"}) == "A1:D14"

    def test_structured_row_column_endpoints(self):
        ref = {"from": {"row": 1, "column": 1}, "to": {"row": 14, "column": 4}}
        assert normalize_filter_range(ref) == "A1:D14"

    def test_missing_reference(self):
        assert normalize_filter_range(None) is None
        assert normalize_filter_range("") is None
        assert normalize_filter_range({"from": "A1"}) is None
