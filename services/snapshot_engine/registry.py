"""Per-import sheet identifier registry.

The mapper registers every sheet once, in document order. The package
extractors resolve sheet names only through this registry so that charts,
pivots and sorts point at the same ids as the mapped cells.
"""
from __future__ import annotations

import secrets
from typing import Dict, List, Optional


def new_id(prefix: str) -> str:
    """Opaque random id such as 'sheet-3f9a1c2b7d4e'."""
    return f"{prefix}-{secrets.token_hex(6)}"


class SheetRegistry:
    """name -> id, name -> ordinal and ordinal -> id lookups for one import."""

    def __init__(self) -> None:
        self._id_by_name: Dict[str, str] = {}
        self._ordinal_by_name: Dict[str, int] = {}
        self._ids: List[str] = []

    def register(self, name: str) -> str:
        """Issue an id for ``name``; registering a name twice returns the first id."""
        existing = self._id_by_name.get(name)
        if existing is not None:
            return existing
        sheet_id = new_id("sheet")
        self._id_by_name[name] = sheet_id
        self._ordinal_by_name[name] = len(self._ids)
        self._ids.append(sheet_id)
        return sheet_id

    def id_for(self, name: str) -> Optional[str]:
        return self._id_by_name.get(name)

    def ordinal_for(self, name: str) -> Optional[int]:
        return self._ordinal_by_name.get(name)

    def id_at(self, ordinal: int) -> Optional[str]:
        if 0 <= ordinal < len(self._ids):
            return self._ids[ordinal]
        return None

    @property
    def sheet_ids(self) -> List[str]:
        return list(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, name: str) -> bool:
        return name in self._id_by_name
