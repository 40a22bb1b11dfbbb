"""API routes for spreadsheet snapshot imports.

- Upload XLSX/XLS -> canonical snapshot plus auxiliary artifacts
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, File, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from services.snapshot_engine import (
    FileTooLargeError,
    SnapshotImportError,
    file_type_from_filename,
    get_import_settings,
    import_file,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/imports", tags=["imports"])


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/", response_model=dict)
async def import_spreadsheet(
    file: UploadFile = File(...),
    include_images: bool = Query(True, description="Extract floating and in-cell images"),
):
    """Upload a workbook and convert it into a snapshot.

    Per-item failures (a broken chart part, an unknown pivot cache) do not fail
    the request; they are listed under ``report.skips`` in the response.
    """
    if not file.filename:
        raise HTTPException(400, "No filename provided")

    settings = get_import_settings()
    content = await file.read()

    try:
        if len(content) > settings.max_upload_bytes:
            raise FileTooLargeError(len(content), settings.max_upload_bytes)
        file_type = file_type_from_filename(file.filename)
        result = await run_in_threadpool(
            import_file, content, file_type, include_images, settings,
        )
    except SnapshotImportError as e:
        logger.warning(f"[IMPORT] {file.filename} rejected: {e}")
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())

    logger.info(f"[IMPORT] {file.filename}: {len(result.snapshot.sheet_order)} sheets")
    return result.model_dump(mode="json", exclude_none=True)
