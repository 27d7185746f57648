"""Domain records: chapters, plot points, batches, scripts and their status enums.

All records are frozen dataclasses; state changes produce new instances
(see state.py).
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

# Chapters whose filename carries no number sort after every numbered chapter.
ORDER_SENTINEL = 999999

HOOK_UNCLASSIFIED = "unclassified"


class PointStatus(enum.Enum):
    UNUSED = "unused"
    USED = "used"


class BatchStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ScriptStatus(enum.Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Chapter:
    id: str
    name: str
    content: str
    order: int = ORDER_SENTINEL


@dataclass(frozen=True)
class PlotPoint:
    id: str
    content: str
    scene: str
    action: str
    episode: int
    batch_index: int
    hook_type: str = HOOK_UNCLASSIFIED
    status: PointStatus = PointStatus.UNUSED

    @property
    def is_unused(self) -> bool:
        return self.status is PointStatus.UNUSED

    def mark_used(self) -> "PlotPoint":
        if self.status is PointStatus.USED:
            return self
        return replace(self, status=PointStatus.USED)


@dataclass(frozen=True)
class PlotBatch:
    index: int
    chapter_range: str
    content: str
    points: Tuple[PlotPoint, ...] = ()
    status: BatchStatus = BatchStatus.PENDING
    report: Optional[str] = None


@dataclass(frozen=True)
class ScriptFile:
    episode: int
    title: str
    content: str
    status: ScriptStatus = ScriptStatus.DRAFT
    aligner_report: Optional[str] = None
    # (batch_index, point_id) pairs consumed to write this episode
    point_refs: Tuple[Tuple[int, str], ...] = field(default=())
