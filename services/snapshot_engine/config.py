"""Centralized import configuration.

Single source of truth for the engine's size thresholds and sheet defaults.
Reads from environment variables with sensible defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class ImportSettings:
    """Import settings loaded from environment.

    Usage:
        settings = get_import_settings()
        print(settings.min_row_count)  # 1000
    """
    # Size handling
    large_file_warning_bytes: int = 10 * 1024 * 1024
    max_upload_bytes: int = 50 * 1024 * 1024

    # Sheet floors and defaults
    min_row_count: int = 1000
    min_column_count: int = 26
    default_row_height: float = 24
    default_column_width: float = 73

    # Source column width unit -> pixels
    column_width_factor: float = 7.5

    include_images_default: bool = True


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _load_settings_from_env() -> ImportSettings:
    """Load import settings from environment variables."""
    defaults = ImportSettings()
    return ImportSettings(
        large_file_warning_bytes=int(os.getenv("SNAPSHOT_LARGE_FILE_BYTES", defaults.large_file_warning_bytes)),
        max_upload_bytes=int(os.getenv("SNAPSHOT_MAX_UPLOAD_BYTES", defaults.max_upload_bytes)),
        min_row_count=int(os.getenv("SNAPSHOT_MIN_ROW_COUNT", defaults.min_row_count)),
        min_column_count=int(os.getenv("SNAPSHOT_MIN_COLUMN_COUNT", defaults.min_column_count)),
        default_row_height=float(os.getenv("SNAPSHOT_DEFAULT_ROW_HEIGHT", defaults.default_row_height)),
        default_column_width=float(os.getenv("SNAPSHOT_DEFAULT_COLUMN_WIDTH", defaults.default_column_width)),
        column_width_factor=float(os.getenv("SNAPSHOT_COLUMN_WIDTH_FACTOR", defaults.column_width_factor)),
        include_images_default=_env_bool("SNAPSHOT_INCLUDE_IMAGES", defaults.include_images_default),
    )


# Singleton instance
_settings: ImportSettings | None = None


def get_import_settings() -> ImportSettings:
    """Get the import settings singleton."""
    global _settings
    if _settings is None:
        _settings = _load_settings_from_env()
    return _settings


def reload_import_settings() -> ImportSettings:
    """Force reload settings from environment."""
    global _settings
    _settings = _load_settings_from_env()
    return _settings
