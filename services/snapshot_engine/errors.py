"""Fatal import errors.

Only failures that make the whole document unreadable are raised. Anything
below the workbook level is recorded as a skip in the import report instead.

Hierarchy:
    SnapshotImportError (base)
    ├── UnsupportedFormatError
    ├── FileTooLargeError
    └── WorkbookLoadError
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes surfaced to API callers."""
    UNSUPPORTED_FORMAT = "E1001"
    FILE_TOO_LARGE = "E1002"
    WORKBOOK_UNREADABLE = "E1003"
    INTERNAL_ERROR = "E9001"


class SnapshotImportError(Exception):
    """Base class for errors that abort an import."""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class UnsupportedFormatError(SnapshotImportError):
    """The discriminator or file extension is not an importable workbook."""

    http_status: int = 400

    def __init__(self, file_type: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Unsupported file type: {file_type!r}",
            ErrorCode.UNSUPPORTED_FORMAT,
            {"file_type": file_type},
        )
        self.file_type = file_type


class FileTooLargeError(SnapshotImportError):
    """Upload exceeds the configured maximum size."""

    http_status: int = 413

    def __init__(self, file_size: int, max_size: int) -> None:
        super().__init__(
            f"File size ({file_size} bytes) exceeds maximum allowed size ({max_size} bytes)",
            ErrorCode.FILE_TOO_LARGE,
            {"file_size_bytes": file_size, "max_size_bytes": max_size},
        )
        self.file_size = file_size
        self.max_size = max_size


class WorkbookLoadError(SnapshotImportError):
    """The top-level document could not be parsed at all."""

    http_status: int = 422

    def __init__(self, file_type: str, reason: str) -> None:
        super().__init__(
            f"Could not read {file_type} workbook: {reason}",
            ErrorCode.WORKBOOK_UNREADABLE,
            {"file_type": file_type},
        )
        self.file_type = file_type
