"""Chapter file ingestion: a thin I/O wrapper outside the core."""
from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from .context import MissingFileError
from .logging import breadcrumb as _breadcrumb
from .utils import read_text


def read_chapter_files(directory: str | Path, pattern: str = "*.txt") -> List[Tuple[str, str]]:
    """Return (filename, content) for every matching file, in filename order.

    Ordering by chapter number happens later, on ingestion into the project.
    """
    d = Path(directory)
    if not d.is_dir():
        raise MissingFileError(f"Chapters directory not found: {directory}")
    records: List[Tuple[str, str]] = []
    for p in sorted(d.glob(pattern)):
        if not p.is_file():
            continue
        records.append((p.name, read_text(p)))
    _breadcrumb(f"ingest:read {len(records)} file(s) from {d}")
    return records
