"""Per-item extraction results and the import report.

Each best-effort extraction step returns either ``Extracted`` or ``Skipped``.
Callers keep the successes and hand skips to an ``ImportReport``, which logs
them and exposes a summary alongside the snapshot.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterable, List, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Extracted(Generic[T]):
    """A successfully extracted item."""
    item: T


@dataclass
class Skipped:
    """Why an item was left out of the result."""
    stage: str  # "map", "image", "chart", "pivot", "sort", "package"
    category: str  # "unknown_sheet", "missing_part", "malformed", ...
    message: str
    details: Optional[Dict[str, Any]] = None


Outcome = Union[Extracted[T], Skipped]


@dataclass
class ImportReport:
    """Everything that was skipped during one import."""
    file_type: str
    skips: List[Skipped] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_skips(self) -> bool:
        return bool(self.skips)

    def skip(self, stage: str, category: str, message: str, details: Optional[Dict[str, Any]] = None) -> Skipped:
        skipped = Skipped(stage, category, message, details)
        self.add(skipped)
        return skipped

    def add(self, skipped: Skipped) -> None:
        logger.warning(f"[{skipped.stage.upper()}] Skipped ({skipped.category}): {skipped.message}")
        self.skips.append(skipped)

    def warn(self, message: str) -> None:
        logger.warning(f"[IMPORT] {message}")
        self.warnings.append(message)

    def collect(self, outcomes: Iterable[Outcome]) -> List[Any]:
        """Keep extracted items, record skips."""
        items = []
        for outcome in outcomes:
            if isinstance(outcome, Extracted):
                items.append(outcome.item)
            else:
                self.add(outcome)
        return items

    def to_dict(self) -> Dict[str, Any]:
        by_stage: Dict[str, int] = {}
        for s in self.skips:
            by_stage[s.stage] = by_stage.get(s.stage, 0) + 1
        return {
            "file_type": self.file_type,
            "has_skips": self.has_skips,
            "skipped_by_stage": by_stage,
            "warnings": list(self.warnings),
            "skips": [
                {
                    "stage": s.stage,
                    "category": s.category,
                    "message": s.message,
                    **({"details": s.details} if s.details else {}),
                }
                for s in self.skips
            ],
        }
