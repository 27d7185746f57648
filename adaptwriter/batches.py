"""Chapter ordering and fixed-size batch slicing.

A batch's index is the join key back to its chapters:
batch i covers chapters[i*size : i*size+size] of the sorted chapter list.
"""
from __future__ import annotations

import re
import uuid
from typing import Iterable, List, Sequence, Tuple

from .env import DEFAULT_BATCH_SIZE
from .models import ORDER_SENTINEL, Chapter

_ORDER_RE = re.compile(r"(\d+)")


def parse_order(filename: str) -> int:
    """Sort key from the first run of digits in a filename, e.g. '第12章.txt' -> 12."""
    m = _ORDER_RE.search(filename or "")
    if not m:
        return ORDER_SENTINEL
    return int(m.group(1))


def sort_chapters(chapters: Iterable[Chapter]) -> List[Chapter]:
    """Stable sort by order; ties keep upload sequence."""
    return sorted(chapters, key=lambda c: c.order)


def make_chapters(records: Iterable[Tuple[str, str]]) -> List[Chapter]:
    """Build chapter records from (name, content) pairs in upload sequence."""
    return [
        Chapter(id=uuid.uuid4().hex, name=name, content=content, order=parse_order(name))
        for name, content in records
    ]


def next_slice(chapters: Sequence[Chapter], processed_batch_count: int, size: int = DEFAULT_BATCH_SIZE) -> List[Chapter]:
    """The chapters of the next unprocessed batch; empty when everything is covered."""
    if size <= 0:
        raise ValueError("batch size must be positive")
    start = processed_batch_count * size
    return list(chapters[start:start + size])


def slice_for_batch(chapters: Sequence[Chapter], index: int, size: int = DEFAULT_BATCH_SIZE) -> List[Chapter]:
    return next_slice(chapters, index, size)


def chapter_range(chapters: Sequence[Chapter]) -> str:
    if not chapters:
        return ""
    return f"{chapters[0].order}-{chapters[-1].order}"
