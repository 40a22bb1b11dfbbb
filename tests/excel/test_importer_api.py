"""Tests for import dispatch, fatal errors and the HTTP upload endpoint."""

import sys
import zipfile
from io import BytesIO
from pathlib import Path

import pytest

# Add project root to path (tests/excel/ -> tests/ -> project root)
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from fastapi.testclient import TestClient
from openpyxl import Workbook

from main import app
from services.snapshot_engine import (
    ErrorCode,
    ImportSettings,
    UnsupportedFormatError,
    WorkbookLoadError,
    file_type_from_filename,
    import_file,
    reload_import_settings,
)
from xlsx_fixtures import openpyxl_bytes

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _workbook_bytes():
    wb = Workbook()
    ws = wb.active
    ws.title = "Budget"
    ws.append(["Item", "Cost"])
    ws.append(["Rent", 1200])
    return openpyxl_bytes(wb)


class TestFileTypes:
    """Extension and discriminator handling."""

    @pytest.mark.parametrize("filename,expected", [
        ("Budget.xlsx", "xlsx"),
        ("BUDGET.XLSX", "xlsx"),
        ("macros.xlsm", "xlsx"),
        ("legacy.xls", "xls"),
        ("export.csv", "csv"),
    ])
    def test_known_extensions(self, filename, expected):
        assert file_type_from_filename(filename) == expected

    @pytest.mark.parametrize("filename", ["notes.txt", "archive.zip", "no_extension", ""])
    def test_unknown_extensions(self, filename):
        with pytest.raises(UnsupportedFormatError):
            file_type_from_filename(filename)

    def test_discriminator_is_normalized(self):
        result = import_file(_workbook_bytes(), ".XLSX", settings=ImportSettings())
        assert result.report["file_type"] == "xlsx"

    def test_csv_is_rejected(self):
        with pytest.raises(UnsupportedFormatError) as exc:
            import_file(b"a,b\n1,2\n", "csv", settings=ImportSettings())
        assert exc.value.http_status == 400
        assert exc.value.error_code == ErrorCode.UNSUPPORTED_FORMAT

    def test_unknown_type_is_rejected(self):
        with pytest.raises(UnsupportedFormatError):
            import_file(b"", "ods", settings=ImportSettings())


class TestFatalErrors:
    """Only an unreadable top-level document aborts the import."""

    def test_xlsx_that_is_not_a_zip(self):
        with pytest.raises(WorkbookLoadError) as exc:
            import_file(b"definitely not a workbook", "xlsx", settings=ImportSettings())
        assert exc.value.http_status == 422
        assert exc.value.to_dict()["error_code"] == "E1003"

    def test_zip_that_is_not_a_workbook(self):
        buffer = BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("hello.txt", "hi")

        with pytest.raises(WorkbookLoadError):
            import_file(buffer.getvalue(), "xlsx", settings=ImportSettings())

    def test_garbage_xls(self):
        with pytest.raises(WorkbookLoadError):
            import_file(b"\x00" * 600, "xls", settings=ImportSettings())

    def test_large_file_only_warns(self):
        settings = ImportSettings(large_file_warning_bytes=10)
        result = import_file(_workbook_bytes(), "xlsx", settings=settings)

        assert len(result.snapshot.sheet_order) == 1
        assert len(result.report["warnings"]) == 1
        assert "Large file" in result.report["warnings"][0]

    def test_clean_import_has_empty_report(self):
        report = import_file(_workbook_bytes(), "xlsx", settings=ImportSettings()).report

        assert report["has_skips"] is False
        assert report["skips"] == []
        assert report["warnings"] == []


class TestImportEndpoint:
    """POST /imports/ with multipart uploads."""

    @pytest.fixture
    def client(self):
        return TestClient(app)

    @pytest.fixture
    def small_upload_limit(self, monkeypatch):
        monkeypatch.setenv("SNAPSHOT_MAX_UPLOAD_BYTES", "100")
        reload_import_settings()
        yield
        monkeypatch.delenv("SNAPSHOT_MAX_UPLOAD_BYTES")
        reload_import_settings()

    def test_health(self, client):
        assert client.get("/").json() == {"status": "ok"}

    def test_upload_xlsx(self, client):
        response = client.post(
            "/imports/",
            files={"file": ("budget.xlsx", _workbook_bytes(), XLSX_MIME)},
        )

        assert response.status_code == 200
        body = response.json()
        [sheet_id] = body["snapshot"]["sheet_order"]
        sheet = body["snapshot"]["sheets"][sheet_id]
        assert sheet["name"] == "Budget"
        assert sheet["cell_data"]["1"]["1"]["value"] == 1200
        assert sheet["cell_data"]["0"]["0"]["value_type"] == "string"
        assert body["report"]["file_type"] == "xlsx"
        print(f"\n✓ Upload returned sheet {sheet_id}")

    def test_include_images_flag(self, client):
        response = client.post(
            "/imports/?include_images=false",
            files={"file": ("budget.xlsx", _workbook_bytes(), XLSX_MIME)},
        )
        assert response.status_code == 200
        assert response.json()["images"] == {}

    def test_unsupported_extension(self, client):
        response = client.post("/imports/", files={"file": ("notes.txt", b"hello", "text/plain")})

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "E1001"

    def test_csv_upload(self, client):
        response = client.post("/imports/", files={"file": ("data.csv", b"a,b\n1,2\n", "text/csv")})

        assert response.status_code == 400
        assert response.json()["detail"]["details"]["file_type"] == "csv"

    def test_unreadable_workbook(self, client):
        response = client.post("/imports/", files={"file": ("broken.xlsx", b"not a zip", XLSX_MIME)})

        assert response.status_code == 422
        assert response.json()["detail"]["error_code"] == "E1003"

    def test_upload_too_large(self, client, small_upload_limit):
        response = client.post(
            "/imports/",
            files={"file": ("budget.xlsx", _workbook_bytes(), XLSX_MIME)},
        )

        assert response.status_code == 413
        detail = response.json()["detail"]
        assert detail["error_code"] == "E1002"
        assert detail["details"]["max_size_bytes"] == 100
