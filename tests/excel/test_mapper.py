"""End-to-end tests for the xlsx document-model mapper.

Workbooks are built with openpyxl, saved to bytes and imported through
``import_file`` so every check covers the full load -> map path.
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add project root to path (tests/excel/ -> tests/ -> project root)
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.worksheet.datavalidation import DataValidation

from services.snapshot_engine.config import ImportSettings
from services.snapshot_engine.importer import import_file
from services.snapshot_engine.mapper import map_sheet
from services.snapshot_engine.report import ImportReport
from services.snapshot_engine.schemas import HorizontalAlign, ImageType, ValueType
from xlsx_fixtures import (
    A_NS,
    PNG_BYTES,
    R_NS,
    XDR_NS,
    PackageBuilder,
    add_parts,
    openpyxl_bytes,
    rels_xml,
)


def _import(workbook, **kwargs):
    return import_file(openpyxl_bytes(workbook), "xlsx", settings=ImportSettings(), **kwargs)


def _only_sheet(result):
    assert len(result.snapshot.sheet_order) == 1
    return result.snapshot.sheets[result.snapshot.sheet_order[0]]


@pytest.fixture
def wb():
    workbook = Workbook()
    workbook.active.title = "Data"
    return workbook


class TestSheetOrder:
    """Every sheet is emitted, in document order, empty ones included."""

    def test_order_and_names(self, wb):
        wb["Data"]["A1"] = "x"
        wb.create_sheet("Empty")
        wb.create_sheet("Summary")["B2"] = 1

        snapshot = _import(wb).snapshot

        names = [snapshot.sheets[sid].name for sid in snapshot.sheet_order]
        assert names == ["Data", "Empty", "Summary"]
        assert len(set(snapshot.sheet_order)) == 3
        assert all(sid.startswith("sheet-") for sid in snapshot.sheet_order)

    def test_empty_sheet_uses_floors(self, wb):
        sheet = _only_sheet(_import(wb))

        assert sheet.cell_data == {}
        assert sheet.row_count == 1000
        assert sheet.column_count == 26
        assert sheet.default_row_height == 24
        assert sheet.default_column_width == 73

    def test_counts_extend_past_floors(self, wb):
        wb["Data"].cell(row=1500, column=30, value="far")

        sheet = _only_sheet(_import(wb))

        assert sheet.row_count == 1500
        assert sheet.column_count == 30
        assert sheet.get_cell(1499, 29).value == "far"

    def test_hidden_sheets(self, wb):
        wb.create_sheet("Hidden").sheet_state = "hidden"
        wb.create_sheet("VeryHidden").sheet_state = "veryHidden"

        snapshot = _import(wb).snapshot

        assert snapshot.get_sheet_by_name("Data").hidden is False
        assert snapshot.get_sheet_by_name("Hidden").hidden is True
        assert snapshot.get_sheet_by_name("VeryHidden").hidden is True


class TestCells:
    """Sparsity, value typing and styles."""

    def test_only_populated_cells_exist(self, wb):
        ws = wb["Data"]
        ws["A1"] = "Name"
        ws["C3"] = 12.5
        ws["B2"].font = Font(bold=True)

        sheet = _only_sheet(_import(wb))

        assert sheet.get_cell(0, 0).value == "Name"
        assert sheet.get_cell(0, 0).value_type == ValueType.STRING
        assert sheet.get_cell(2, 2).value == 12.5
        assert sheet.get_cell(2, 2).value_type == ValueType.NUMBER
        styled = sheet.get_cell(1, 1)
        assert styled.value is None
        assert styled.style.bold is True
        assert sheet.get_cell(0, 1) is None
        assert sheet.get_cell(1, 0) is None

    def test_distant_cells_do_not_fill_the_grid(self, wb):
        ws = wb["Data"]
        ws["A1"] = "top"
        ws["Z5000"] = "bottom"

        mapping = map_sheet(ws, None, "sheet-1", ImportSettings(), ImportReport(file_type="xlsx"))

        assert len(ws._cells) == 2
        assert {r: list(cols) for r, cols in mapping.sheet.cell_data.items()} == {0: [0], 4999: [25]}
        assert mapping.sheet.row_count == 5000

    def test_cell_style(self, wb):
        ws = wb["Data"]
        ws["A1"] = "Header"
        ws["A1"].font = Font(bold=True, italic=True, size=14, color="FFFF0000")
        ws["A1"].fill = PatternFill(fill_type="solid", fgColor="FFFFFF00")
        ws["A1"].alignment = Alignment(horizontal="center", wrap_text=True)

        style = _only_sheet(_import(wb)).get_cell(0, 0).style

        assert style.bold is True
        assert style.italic is True
        assert style.font_size == 14
        assert style.font_color == "#FF0000"
        assert style.background_color == "#FFFF00"
        assert style.horizontal_align == HorizontalAlign.CENTER
        assert style.wrap is True

    def test_number_format_is_classified(self, wb):
        ws = wb["Data"]
        ws["A1"] = 1234.5
        ws["A1"].number_format = "#,##0.00"

        cell = _only_sheet(_import(wb)).get_cell(0, 0)

        assert cell.value == 1234.5
        assert cell.style.number_format.decimal_places == 2
        assert cell.style.number_format.has_thousands_separator is True

    def test_dates_follow_their_format(self, wb):
        ws = wb["Data"]
        ws["A1"] = datetime(2026, 1, 7)
        ws["A1"].number_format = "yyyy-mm-dd"
        ws["A2"] = datetime(2026, 1, 7)
        ws["A2"].number_format = "yyyy/m/d"

        sheet = _only_sheet(_import(wb))

        assert sheet.get_cell(0, 0).value == "2026-01-07"
        assert sheet.get_cell(0, 0).value_type == ValueType.STRING
        assert sheet.get_cell(1, 0).value == "2026/1/7"

    def test_hyperlink(self, wb):
        ws = wb["Data"]
        ws["A1"] = "Docs"
        ws["A1"].hyperlink = "https://example.com/docs"

        cell = _only_sheet(_import(wb)).get_cell(0, 0)

        assert cell.value == "Docs"
        assert cell.hyperlink.url == "https://example.com/docs"

    def test_hyperlinked_number_keeps_value_and_link(self, wb):
        ws = wb["Data"]
        ws["A1"] = 42
        ws["A1"].hyperlink = "https://example.com/q1"

        cell = _only_sheet(_import(wb)).get_cell(0, 0)

        assert cell.value == 42
        assert cell.value_type == ValueType.NUMBER
        assert cell.hyperlink.url == "https://example.com/q1"
        assert cell.hyperlink.text == "42"

    def test_hyperlinked_formula_keeps_formula_and_cached_result(self):
        builder = PackageBuilder(["Data"])
        builder.set_sheet_body(0, (
            '<sheetData>'
            '<row r="1"><c r="A1"><f>SUM(1,2)</f><v>3</v></c></row>'
            '</sheetData>'
            '<hyperlinks><hyperlink ref="A1" location="Data!C5"/></hyperlinks>'
        ))

        result = import_file(builder.build(), "xlsx", settings=ImportSettings())
        cell = _only_sheet(result).get_cell(0, 0)

        assert cell.formula == "=SUM(1,2)"
        assert cell.value == 3
        assert cell.hyperlink.url == "#Data!C5"
        assert cell.hyperlink.text == "3"

    def test_formula_with_cached_result(self):
        builder = PackageBuilder(["Data"])
        builder.set_sheet_body(0, (
            '<sheetData>'
            '<row r="1"><c r="A1"><v>10</v></c><c r="B1"><f>SUM(A1:A3)</f><v>42</v></c></row>'
            '<row r="2"><c r="A2"><v>12</v></c></row>'
            '<row r="3"><c r="A3"><v>20</v></c></row>'
            '</sheetData>'
        ))

        result = import_file(builder.build(), "xlsx", settings=ImportSettings())
        cell = _only_sheet(result).get_cell(0, 1)

        assert cell.formula == "=SUM(A1:A3)"
        assert cell.value == 42
        assert cell.value_type == ValueType.NUMBER
        print("\n✓ Cached formula result carried into the snapshot")

    def test_formula_without_cached_result(self, wb):
        wb["Data"]["A1"] = "=1+1"

        cell = _only_sheet(_import(wb)).get_cell(0, 0)

        assert cell.formula == "=1+1"
        assert cell.value == "=1+1"


class TestMerges:
    """Merged regions and anchor border propagation."""

    def test_merge_region_is_zero_based(self, wb):
        ws = wb["Data"]
        ws["B2"] = "Title"
        ws.merge_cells("B2:D4")

        sheet = _only_sheet(_import(wb))

        assert len(sheet.merges) == 1
        merge = sheet.merges[0]
        assert (merge.start_row, merge.end_row, merge.start_column, merge.end_column) == (1, 3, 1, 3)
        assert sheet.get_cell(1, 1).value == "Title"

    def test_anchor_borders_reach_the_perimeter(self, wb):
        ws = wb["Data"]
        thin = Side(style="thin", color="FF000000")
        ws["B2"] = "Boxed"
        ws["B2"].border = Border(top=thin, bottom=thin, left=thin, right=thin)
        ws.merge_cells("B2:D4")

        sheet = _only_sheet(_import(wb))

        for column in (1, 2, 3):
            assert sheet.get_cell(1, column).style.border_top.style == 1
            assert sheet.get_cell(3, column).style.border_bottom.style == 1
        for row in (1, 2, 3):
            assert sheet.get_cell(row, 1).style.border_left.style == 1
            assert sheet.get_cell(row, 3).style.border_right.style == 1
        assert sheet.get_cell(3, 3).style.border_bottom.color == "#000000"
        assert sheet.get_cell(2, 2) is None


class TestSheetLayout:
    """Freeze panes, row and column metadata, validations and filters."""

    def test_freeze(self, wb):
        wb["Data"].freeze_panes = "B3"

        freeze = _only_sheet(_import(wb)).freeze

        assert freeze.start_row == 2
        assert freeze.start_column == 1

    def test_no_freeze(self, wb):
        assert _only_sheet(_import(wb)).freeze is None

    def test_column_width_and_hidden_column(self, wb):
        ws = wb["Data"]
        ws["A1"] = "x"
        ws.column_dimensions["B"].width = 20
        ws.column_dimensions["C"].hidden = True

        columns = _only_sheet(_import(wb)).column_data

        assert columns[1].width == pytest.approx(150)
        assert columns[1].hidden is False
        assert columns[2].hidden is True

    def test_row_height_and_hidden_row(self, wb):
        ws = wb["Data"]
        ws["A1"] = "x"
        ws.row_dimensions[3].height = 30
        ws.row_dimensions[5].hidden = True

        rows = _only_sheet(_import(wb)).row_data

        assert rows[2].height == 30
        assert rows[4].hidden is True
        assert 0 not in rows

    def test_data_validation(self, wb):
        ws = wb["Data"]
        dv = DataValidation(type="list", formula1='"Yes,No"', allow_blank=True)
        dv.add("E2:E10")
        ws.add_data_validation(dv)

        rules = _only_sheet(_import(wb)).data_validations

        assert len(rules) == 1
        assert rules[0].type == "list"
        assert rules[0].ranges == ["E2:E10"]
        assert rules[0].formula1 == '"Yes,No"'
        assert rules[0].allow_blank is True

    def test_auto_filter(self, wb):
        ws = wb["Data"]
        ws.append(["Name", "Score", "Team"])
        ws.auto_filter.ref = "A1:C10"

        result = _import(wb)
        sheet_id = result.snapshot.sheet_order[0]

        assert result.filters[sheet_id].range == "A1:C10"

    def test_no_filter_no_entry(self, wb):
        assert _import(wb).filters == {}


class TestCellImages:
    """DISPIMG formulas become cell images instead of cells."""

    CELL_IMAGES_XML = (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<etc:cellImages xmlns:etc="http://www.wps.cn/officeDocument/2017/etCustomData" '
        f'xmlns:xdr="{XDR_NS}" xmlns:a="{A_NS}" xmlns:r="{R_NS}">'
        f'<etc:cellImage><xdr:pic><xdr:nvPicPr><xdr:cNvPr id="2" name="ID_ABC"/><xdr:cNvPicPr/></xdr:nvPicPr>'
        f'<xdr:blipFill><a:blip r:embed="rId1"/></xdr:blipFill><xdr:spPr/></xdr:pic></etc:cellImage>'
        f'</etc:cellImages>'
    )

    def _with_cell_images(self, wb):
        return add_parts(openpyxl_bytes(wb), {
            "xl/cellimages.xml": self.CELL_IMAGES_XML,
            "xl/_rels/cellimages.xml.rels": rels_xml([("rId1", "image", "media/image1.png")]),
            "xl/media/image1.png": PNG_BYTES,
        })

    def test_dispimg_cell(self, wb):
        wb["Data"]["C3"] = '=_xlfn.DISPIMG("ID_ABC",1)'

        result = import_file(self._with_cell_images(wb), "xlsx", settings=ImportSettings())
        sheet = _only_sheet(result)
        images = result.images[sheet.id]

        assert len(images) == 1
        image = images[0]
        assert image.image_type == ImageType.CELL
        assert (image.position.row, image.position.column) == (2, 2)
        assert (image.size.width, image.size.height) == (100, 100)
        assert image.title == "CellImage_ID_ABC"
        assert image.source.startswith("data:image/png;base64,")
        assert sheet.get_cell(2, 2) is None

    def test_dispimg_without_xlfn_prefix(self, wb):
        wb["Data"]["B2"] = '=DISPIMG("ID_ABC",1)'

        result = import_file(self._with_cell_images(wb), "xlsx", settings=ImportSettings())
        sheet = _only_sheet(result)

        [image] = result.images[sheet.id]
        assert image.title == "CellImage_ID_ABC"
        assert (image.position.row, image.position.column) == (1, 1)
        assert sheet.get_cell(1, 1) is None

    def test_unknown_image_id_is_skipped(self, wb):
        wb["Data"]["A1"] = '=_xlfn.DISPIMG("ID_MISSING",1)'

        result = import_file(self._with_cell_images(wb), "xlsx", settings=ImportSettings())

        assert result.images == {}
        assert result.report["skipped_by_stage"] == {"image": 1}
        assert _only_sheet(result).get_cell(0, 0) is None


class TestDeterminism:
    """Importing the same bytes twice gives the same snapshot up to ids."""

    def test_idempotent_up_to_ids(self, wb):
        ws = wb["Data"]
        ws.append(["Region", "Q1", "Q2"])
        ws.append(["North", 10, 12])
        ws.append(["South", 7, 9])
        ws["A1"].font = Font(bold=True)
        ws.merge_cells("E1:F2")
        wb.create_sheet("Notes")["A1"] = "n/a"
        data = openpyxl_bytes(wb)

        first = import_file(data, "xlsx", settings=ImportSettings()).snapshot
        second = import_file(data, "xlsx", settings=ImportSettings()).snapshot

        assert first.sheet_order != second.sheet_order
        for a, b in zip(first.sheet_order, second.sheet_order):
            assert first.sheets[a].model_dump(exclude={"id"}) == second.sheets[b].model_dump(exclude={"id"})
