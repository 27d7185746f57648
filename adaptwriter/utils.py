"""Utility helpers: file I/O and safe JSON text rendering.

Public helpers:
- save_text(path, content)
- read_text(path)
- to_text(obj)
- truncate(text, limit)
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .context import AWError, MissingFileError


def save_text(path: str | Path, content: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")


def read_text(path: str | Path) -> str:
    p = Path(path)
    if not p.exists():
        raise MissingFileError(f"Required file not found: {path}")
    try:
        return p.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        # Chinese novels are frequently saved as GB18030
        try:
            return p.read_text(encoding="gb18030")
        except UnicodeDecodeError as e:
            raise AWError(f"Unable to decode file {path}: {e}")
    except OSError as e:
        raise AWError(f"Unable to read file {path}: {e}")


def to_text(obj: Any) -> str:
    try:
        return json.dumps(obj, ensure_ascii=False, indent=2, default=str)
    except (TypeError, ValueError):
        return str(obj)


def truncate(text: str, limit: int) -> str:
    """Cut text to at most limit characters (no marker appended)."""
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit]
