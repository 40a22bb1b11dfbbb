"""Import orchestration.

``import_file`` dispatches on the file type, runs the document-model mapper
(which registers every sheet id), then runs the package extractors over the
same archive and bundles everything into one ``ImportResult``.
"""
from __future__ import annotations

import logging
import os
import struct
import zipfile
from io import BytesIO
from typing import Optional

import openpyxl
import xlrd

from .charts import extract_charts
from .config import ImportSettings, get_import_settings
from .errors import UnsupportedFormatError, WorkbookLoadError
from .legacy import map_xls_workbook, open_xls
from .mapper import WorkbookMapping, map_workbook
from .package import PackageReader
from .pivots import extract_pivot_tables
from .registry import SheetRegistry
from .report import ImportReport
from .schemas import ImportResult
from .sorts import extract_sorts

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = ("xlsx", "xls")
# Accepted at the boundary, parsed elsewhere
DELIMITED_TYPES = ("csv",)

_EXTENSION_TYPES = {
    ".xlsx": "xlsx",
    ".xlsm": "xlsx",
    ".xls": "xls",
    ".csv": "csv",
}


def file_type_from_filename(filename: str) -> str:
    """'Budget.XLSX' -> 'xlsx'; raises UnsupportedFormatError for anything else."""
    ext = os.path.splitext(filename or "")[1].lower()
    file_type = _EXTENSION_TYPES.get(ext)
    if file_type is None:
        raise UnsupportedFormatError(ext or filename or "", f"Unsupported file extension: {ext or '(none)'}")
    return file_type


def _result(mapping: WorkbookMapping) -> ImportResult:
    return ImportResult(
        snapshot=mapping.snapshot,
        images=mapping.images,
        conditional_formats=mapping.conditional_formats,
        filters=mapping.filters,
    )


def _import_xlsx(data: bytes, include_images: bool, settings: ImportSettings, report: ImportReport) -> ImportResult:
    try:
        package = PackageReader.from_bytes(data)
    except zipfile.BadZipFile as e:
        raise WorkbookLoadError("xlsx", f"not a zip archive ({e})") from e

    try:
        try:
            # Formulas from one load, cached results from the other
            workbook = openpyxl.load_workbook(BytesIO(data), rich_text=True)
            values_workbook = openpyxl.load_workbook(BytesIO(data), data_only=True)
        except Exception as e:
            raise WorkbookLoadError("xlsx", str(e) or type(e).__name__) from e

        registry = SheetRegistry()
        mapping = map_workbook(
            workbook, values_workbook, registry, report, settings,
            package=package, include_images=include_images,
        )
        result = _result(mapping)

        # Extractors only read the archive and the registry
        result.charts = extract_charts(package, registry, report)
        result.pivot_tables = extract_pivot_tables(package, registry, report)
        result.sorts = extract_sorts(package, registry, report)
        return result
    finally:
        package.close()


def _import_xls(data: bytes, settings: ImportSettings, report: ImportReport) -> ImportResult:
    try:
        book = open_xls(data)
    except xlrd.XLRDError as e:
        raise WorkbookLoadError("xls", str(e)) from e
    except (xlrd.compdoc.CompDocError, EOFError, ValueError, struct.error) as e:
        raise WorkbookLoadError("xls", str(e) or type(e).__name__) from e

    try:
        mapping = map_xls_workbook(book, SheetRegistry(), report, settings)
    finally:
        book.release_resources()
    return _result(mapping)


def import_file(
    data: bytes,
    file_type: str,
    include_images: Optional[bool] = None,
    settings: Optional[ImportSettings] = None,
) -> ImportResult:
    """Convert a workbook byte buffer into an ImportResult.

    Args:
        data: Raw file contents.
        file_type: "xlsx", "xls" or "csv" (case-insensitive, leading dot allowed).
        include_images: Extract floating and cell images; defaults to the settings.
        settings: Overrides the environment-derived settings.

    Raises:
        UnsupportedFormatError: csv or any unknown type.
        WorkbookLoadError: the document itself cannot be opened.
    """
    settings = settings or get_import_settings()
    if include_images is None:
        include_images = settings.include_images_default
    normalized = (file_type or "").strip().lower().lstrip(".")

    if normalized in DELIMITED_TYPES:
        raise UnsupportedFormatError(normalized, "Delimited text is not handled by the workbook importer")
    if normalized not in SUPPORTED_TYPES:
        raise UnsupportedFormatError(normalized)

    report = ImportReport(file_type=normalized)
    if len(data) > settings.large_file_warning_bytes:
        report.warn(
            f"Large file ({len(data) / 1024 / 1024:.1f} MB), import may take a while"
        )

    logger.info(f"[IMPORT] Importing {normalized} ({len(data)} bytes, images={include_images})")
    if normalized == "xlsx":
        result = _import_xlsx(data, include_images, settings, report)
    else:
        result = _import_xls(data, settings, report)

    result.report = report.to_dict()
    logger.info(
        f"[IMPORT] Done: {len(result.snapshot.sheet_order)} sheets, "
        f"{sum(len(c) for c in result.charts.values())} charts, "
        f"{len(result.pivot_tables)} pivots, {len(report.skips)} skipped items"
    )
    return result
