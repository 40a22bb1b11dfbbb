"""OOXML package relationship resolver.

Works on the raw zip archive, below what openpyxl exposes. Every hop
(workbook -> sheet -> drawing -> chart, sheet -> pivot table -> cache) is a
lookup in a part's ``_rels`` file; a missing or malformed part resolves to
"nothing" so callers can skip just that artifact.
"""
from __future__ import annotations

import logging
import posixpath
import zipfile
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

logger = logging.getLogger(__name__)


# =============================================================================
# NAMESPACES
# =============================================================================

NS = {
    "main": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
    "xdr": "http://schemas.openxmlformats.org/drawingml/2006/spreadsheetDrawing",
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
    "c": "http://schemas.openxmlformats.org/drawingml/2006/chart",
    "c14": "http://schemas.microsoft.com/office/drawing/2007/8/2/chart",
    "c15": "http://schemas.microsoft.com/office/drawing/2012/chart",
    "pic": "http://schemas.openxmlformats.org/drawingml/2006/picture",
}

R_ID = f"{{{NS['r']}}}id"
R_EMBED = f"{{{NS['r']}}}embed"

# Last path segment of the relationship Type URIs we follow
REL_OFFICE_DOCUMENT = "officeDocument"
REL_WORKSHEET = "worksheet"
REL_CHARTSHEET = "chartsheet"
REL_DRAWING = "drawing"
REL_CHART = "chart"
REL_IMAGE = "image"
REL_PIVOT_TABLE = "pivotTable"
REL_PIVOT_CACHE = "pivotCacheDefinition"
REL_CELL_IMAGES = "cellimage"

DEFAULT_WORKBOOK_PART = "xl/workbook.xml"
DEFAULT_CELL_IMAGES_PART = "xl/cellimages.xml"


def qn(prefix: str, tag: str) -> str:
    """Clark-notation name: qn('c', 'chart') -> '{...chart}chart'."""
    return f"{{{NS[prefix]}}}{tag}"


def local_name(tag: str) -> str:
    if "}" in tag:
        return tag.rsplit("}", 1)[1]
    return tag


@dataclass(frozen=True)
class Relationship:
    """A resolved relationship; ``target`` is an archive path unless external."""
    id: str
    type: str
    target: str
    external: bool = False

    @property
    def kind(self) -> str:
        return self.type.rsplit("/", 1)[-1]


def rels_path_for(part: str) -> str:
    """'xl/worksheets/sheet1.xml' -> 'xl/worksheets/_rels/sheet1.xml.rels'."""
    if "/" not in part:
        return f"_rels/{part}.rels"
    prefix, file_name = part.rsplit("/", 1)
    return f"{prefix}/_rels/{file_name}.rels"


def resolve_target(source_part: str, target: str) -> str:
    """Resolve a relationship target against the directory of its source part."""
    if target.startswith("/"):
        return target.lstrip("/")
    base = posixpath.dirname(source_part)
    return posixpath.normpath(posixpath.join(base, target))


# =============================================================================
# READER
# =============================================================================

class PackageReader:
    """Read-only view over an in-memory OOXML archive."""

    def __init__(self, zf: zipfile.ZipFile) -> None:
        self.zf = zf
        self._names = set(zf.namelist())
        self._rels_cache: Dict[str, Dict[str, Relationship]] = {}

    @classmethod
    def from_bytes(cls, data: bytes) -> "PackageReader":
        """Open an archive; raises ``zipfile.BadZipFile`` for non-zip input."""
        return cls(zipfile.ZipFile(BytesIO(data)))

    def close(self) -> None:
        self.zf.close()

    def has_part(self, path: str) -> bool:
        return path in self._names

    def read_bytes(self, path: str) -> Optional[bytes]:
        if path not in self._names:
            return None
        return self.zf.read(path)

    def read_xml(self, path: str) -> Optional[ET.Element]:
        """Parse a part; None when it is absent or not well-formed."""
        data = self.read_bytes(path)
        if data is None:
            return None
        try:
            return ET.fromstring(data)
        except ET.ParseError as e:
            logger.warning(f"[PACKAGE] Malformed XML in {path}: {e}")
            return None

    # -------------------------------------------------------------------------
    # Relationship hops
    # -------------------------------------------------------------------------

    def relationships(self, part: str) -> Dict[str, Relationship]:
        """All relationships of ``part`` keyed by r:id."""
        if part in self._rels_cache:
            return self._rels_cache[part]
        rels: Dict[str, Relationship] = {}
        root = self.read_xml(rels_path_for(part))
        if root is not None:
            for rel in root.findall(qn("rel", "Relationship")):
                rel_id = rel.get("Id")
                target = rel.get("Target")
                if not rel_id or not target:
                    continue
                external = rel.get("TargetMode") == "External"
                rels[rel_id] = Relationship(
                    id=rel_id,
                    type=rel.get("Type", ""),
                    target=target if external else resolve_target(part, target),
                    external=external,
                )
        self._rels_cache[part] = rels
        return rels

    def related_parts(self, part: str, kind: str) -> List[Relationship]:
        """Internal relationships of ``part`` whose type ends with ``kind``."""
        return [
            rel for rel in self.relationships(part).values()
            if rel.kind == kind and not rel.external
        ]

    def target_of(self, part: str, rel_id: Optional[str]) -> Optional[str]:
        if not rel_id:
            return None
        rel = self.relationships(part).get(rel_id)
        if rel is None or rel.external:
            return None
        return rel.target

    def workbook_part(self) -> str:
        for rel in self.related_parts("", REL_OFFICE_DOCUMENT):
            return rel.target
        return DEFAULT_WORKBOOK_PART

    def workbook_xml(self) -> Optional[ET.Element]:
        return self.read_xml(self.workbook_part())

    def sheet_parts(self) -> List[Tuple[str, str]]:
        """(sheet name, part path) in workbook order; unresolvable sheets are left out."""
        workbook = self.workbook_part()
        root = self.read_xml(workbook)
        if root is None:
            return []
        parts: List[Tuple[str, str]] = []
        for sheet in root.iter(qn("main", "sheet")):
            name = sheet.get("name")
            path = self.target_of(workbook, sheet.get(R_ID))
            if not name or not path:
                logger.warning(f"[PACKAGE] Sheet {name!r} has no resolvable part")
                continue
            parts.append((name, path))
        return parts

    def drawing_for(self, sheet_part: str) -> Optional[str]:
        """The DrawingML part of a sheet; VML legacy drawings are not followed."""
        for rel in self.related_parts(sheet_part, REL_DRAWING):
            if not rel.target.lower().endswith(".vml"):
                return rel.target
        return None

    # -------------------------------------------------------------------------
    # Cell-hosted images
    # -------------------------------------------------------------------------

    def cell_images_part(self) -> Optional[str]:
        for rel in self.relationships(self.workbook_part()).values():
            if rel.kind.lower() == REL_CELL_IMAGES and not rel.external:
                return rel.target
        if self.has_part(DEFAULT_CELL_IMAGES_PART):
            return DEFAULT_CELL_IMAGES_PART
        return None

    def cell_images(self) -> Dict[str, Tuple[bytes, str]]:
        """Image name (as used by DISPIMG) -> (bytes, file extension)."""
        part = self.cell_images_part()
        if part is None:
            return {}
        root = self.read_xml(part)
        if root is None:
            return {}
        images: Dict[str, Tuple[bytes, str]] = {}
        for pic in root.iter(qn("xdr", "pic")):
            c_nv_pr = pic.find(f"{qn('xdr', 'nvPicPr')}/{qn('xdr', 'cNvPr')}")
            blip = pic.find(f".//{qn('a', 'blip')}")
            if c_nv_pr is None or blip is None:
                continue
            name = c_nv_pr.get("name")
            media = self.target_of(part, blip.get(R_EMBED))
            data = self.read_bytes(media) if media else None
            if not name or data is None:
                logger.warning(f"[PACKAGE] Cell image {name!r} has no media part")
                continue
            images[name] = (data, posixpath.splitext(media)[1].lstrip("."))
        return images
