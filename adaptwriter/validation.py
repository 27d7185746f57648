"""Validation utilities used by the agent loop and pipelines."""
from __future__ import annotations

from typing import Tuple

ACCEPT_MARKER = "PASS"


def verdict_passes(report: str) -> bool:
    """The aligner accepts when its report contains the PASS marker anywhere.

    Matching is deliberately loose: aligners answer with "✅ PASS" followed
    by a summary, and may wrap it in markdown.
    """
    return ACCEPT_MARKER in (report or "")


def validate_text(output: str) -> Tuple[bool, str]:
    """Text must be non-empty (after stripping)."""
    if output is None:
        return False, "No output returned (None)"
    if str(output).strip() == "":
        return False, "Empty output not allowed"
    return True, "ok"


def validate_breakdown(output: str, parsed_count: int) -> Tuple[bool, str]:
    """A breakdown is usable when at least one plot-point line parsed out of it."""
    ok, reason = validate_text(output)
    if not ok:
        return ok, reason
    if parsed_count <= 0:
        return False, "No line matched 【剧情n】scene，action，第N集，状态：label"
    return True, "ok"
