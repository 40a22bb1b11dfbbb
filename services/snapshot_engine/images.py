"""Floating and cell-hosted images.

Floating pictures are read from the sheet's DrawingML part; cell images come
from DISPIMG formulas resolved against the package's cell image part.
"""
from __future__ import annotations

import base64
import logging
import re
from typing import Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

from .package import PackageReader, R_EMBED, local_name, qn
from .registry import new_id
from .report import Extracted, Outcome, Skipped
from .schemas import AnchorPosition, ImageType, ImportedImage, Size

logger = logging.getLogger(__name__)

EMU_PER_PIXEL = 9525
MIN_IMAGE_SIZE = 20
CELL_IMAGE_SIZE = 100

DISPIMG_RE = re.compile(r'(?:_?xlfn\.)?DISPIMG\s*\(\s*"([^"]+)"', re.IGNORECASE)

MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "tiff": "image/tiff",
    "tif": "image/tiff",
    "ico": "image/x-icon",
}


def mime_type_for(extension: Optional[str]) -> str:
    return MIME_TYPES.get((extension or "").lower().lstrip("."), "image/png")


def to_data_uri(data: bytes, extension: Optional[str]) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type_for(extension)};base64,{encoded}"


def dispimg_id(formula: Optional[str]) -> Optional[str]:
    """Image id of a DISPIMG cell-image formula, if the formula is one."""
    if not formula:
        return None
    match = DISPIMG_RE.search(formula)
    return match.group(1) if match else None


def emu_to_px(value: Optional[str]) -> int:
    try:
        return int(round(int(value or 0) / EMU_PER_PIXEL))
    except ValueError:
        return 0


# =============================================================================
# ANCHORS
# =============================================================================

def _marker(anchor: ET.Element, tag: str) -> Optional[Tuple[int, int, int, int]]:
    """(col, col_off_px, row, row_off_px) of an xdr:from / xdr:to marker."""
    marker = anchor.find(qn("xdr", tag))
    if marker is None:
        return None
    values = {}
    for child in ("col", "colOff", "row", "rowOff"):
        el = marker.find(qn("xdr", child))
        values[child] = (el.text or "0").strip() if el is not None else "0"
    try:
        col = int(values["col"])
        row = int(values["row"])
    except ValueError:
        return None
    return col, emu_to_px(values["colOff"]), row, emu_to_px(values["rowOff"])


def anchor_extent(anchor: ET.Element) -> Optional[Tuple[int, int]]:
    """Explicit size in pixels from xdr:ext or the shape's a:ext."""
    ext = anchor.find(qn("xdr", "ext"))
    if ext is None:
        ext = anchor.find(f".//{qn('a', 'xfrm')}/{qn('a', 'ext')}")
    if ext is None:
        return None
    width, height = emu_to_px(ext.get("cx")), emu_to_px(ext.get("cy"))
    if width <= 0 or height <= 0:
        return None
    return width, height


def _image_geometry(
    anchor: ET.Element,
    default_column_width: float,
    default_row_height: float,
) -> Optional[Tuple[AnchorPosition, Size]]:
    start = _marker(anchor, "from")
    if start is None:
        pos = anchor.find(qn("xdr", "pos"))
        if pos is None:
            return None
        # Absolute anchors have no cell; approximate with default cell sizes
        x, y = emu_to_px(pos.get("x")), emu_to_px(pos.get("y"))
        start = (int(x // default_column_width), int(x % default_column_width),
                 int(y // default_row_height), int(y % default_row_height))
    col, col_off, row, row_off = start
    position = AnchorPosition(row=row, column=col, row_offset=row_off, column_offset=col_off)

    extent = anchor_extent(anchor)
    if extent is not None:
        width, height = extent
    else:
        end = _marker(anchor, "to")
        if end is None:
            width = height = MIN_IMAGE_SIZE
        else:
            end_col, end_col_off, end_row, end_row_off = end
            width = int(round((end_col - col) * default_column_width + end_col_off - col_off))
            height = int(round((end_row - row) * default_row_height + end_row_off - row_off))
    size = Size(width=max(MIN_IMAGE_SIZE, width), height=max(MIN_IMAGE_SIZE, height))
    return position, size


# =============================================================================
# EXTRACTION
# =============================================================================

def _floating_image(
    package: PackageReader,
    drawing_part: str,
    anchor: ET.Element,
    sheet_id: str,
    number: int,
    default_column_width: float,
    default_row_height: float,
) -> Optional[Outcome]:
    pic = anchor.find(f".//{qn('xdr', 'pic')}")
    if pic is None:
        return None
    blip = pic.find(f".//{qn('a', 'blip')}")
    media = package.target_of(drawing_part, blip.get(R_EMBED)) if blip is not None else None
    data = package.read_bytes(media) if media else None
    if data is None:
        return Skipped("image", "missing_part", f"Picture {number} in {drawing_part} has no media part")

    geometry = _image_geometry(anchor, default_column_width, default_row_height)
    if geometry is None:
        return Skipped("image", "malformed", f"Picture {number} in {drawing_part} has no anchor position")
    position, size = geometry
    return Extracted(ImportedImage(
        id=new_id("image"),
        sheet_id=sheet_id,
        image_type=ImageType.FLOATING,
        source=to_data_uri(data, media.rsplit(".", 1)[-1]),
        title=f"Image_{number}",
        position=position,
        size=size,
    ))


def extract_floating_images(
    package: PackageReader,
    sheet_part: str,
    sheet_id: str,
    default_column_width: float,
    default_row_height: float,
) -> List[Outcome]:
    """One outcome per picture anchor in the sheet's drawing."""
    drawing_part = package.drawing_for(sheet_part)
    if drawing_part is None:
        return []
    root = package.read_xml(drawing_part)
    if root is None:
        return [Skipped("image", "malformed", f"Drawing {drawing_part} could not be read")]

    outcomes: List[Outcome] = []
    for anchor in root:
        if local_name(anchor.tag) not in ("twoCellAnchor", "oneCellAnchor", "absoluteAnchor"):
            continue
        outcome = _floating_image(
            package, drawing_part, anchor, sheet_id, len(outcomes) + 1,
            default_column_width, default_row_height,
        )
        if outcome is not None:
            outcomes.append(outcome)
    return outcomes


def cell_image(
    image_id: str,
    images: Dict[str, Tuple[bytes, str]],
    sheet_id: str,
    row: int,
    column: int,
) -> Outcome:
    """Cell-hosted image for a DISPIMG formula at (row, column)."""
    found = images.get(image_id)
    if found is None:
        return Skipped("image", "missing_part", f"Cell image {image_id!r} is not in the package",
                       {"row": row, "column": column})
    data, extension = found
    return Extracted(ImportedImage(
        id=new_id("cell-img"),
        sheet_id=sheet_id,
        image_type=ImageType.CELL,
        source=to_data_uri(data, extension),
        title=f"CellImage_{image_id}",
        position=AnchorPosition(row=row, column=column),
        size=Size(width=CELL_IMAGE_SIZE, height=CELL_IMAGE_SIZE),
    ))
