"""Plot-point extraction from breakdown text.

Breakdown output is free-form model text in which the structured lines look like:

    【剧情3】宗门大殿，萧炎当众退婚，第2集，状态：未用

Anything else (headers, commentary, blank lines) is skipped. The regex
parser sits behind the PlotPointParser interface so a stricter grammar can
replace it without touching callers.
"""
from __future__ import annotations

import re
from typing import List, Optional, Protocol

from .models import HOOK_UNCLASSIFIED, PlotPoint, PointStatus

# The scene ends at the first full-width comma; later separators may be ASCII.
PLOT_LINE_RE = re.compile(r"【(剧情\d+)】(.*?)，(.*?)[，,]第(\d+)集[，,]状态[：:](.*)")

_TITLE_RES = (
    re.compile(r"^\s*#+\s*第\s*\d+\s*集\s*[:：]\s*(.+?)\s*$"),
    re.compile(r"^\s*#+\s*Episode\s*\d+\s*[:：]\s*(.+?)\s*$", re.IGNORECASE),
)


class PlotPointParser(Protocol):
    def parse(self, raw_text: str, batch_index: int) -> List[PlotPoint]:
        ...


def parse_plot_line(line: str, batch_index: int) -> Optional[PlotPoint]:
    """Parse one breakdown line, or return None when it does not match the grammar.

    The status label in the line is informational only; parsed points always
    start out unused.
    """
    m = PLOT_LINE_RE.search(line)
    if not m:
        return None
    return PlotPoint(
        id=m.group(1),
        content=line,
        scene=m.group(2).strip(),
        action=m.group(3).strip(),
        episode=int(m.group(4)),
        batch_index=batch_index,
        hook_type=HOOK_UNCLASSIFIED,
        status=PointStatus.UNUSED,
    )


def parse_plot_points(raw_text: str, batch_index: int) -> List[PlotPoint]:
    """Extract plot points in line order; ids repeated within the text keep their first occurrence."""
    points: List[PlotPoint] = []
    seen = set()
    for line in (raw_text or "").splitlines():
        if not line.strip():
            continue
        point = parse_plot_line(line, batch_index)
        if point is None or point.id in seen:
            continue
        seen.add(point.id)
        points.append(point)
    return points


class RegexPlotPointParser:
    def parse(self, raw_text: str, batch_index: int) -> List[PlotPoint]:
        return parse_plot_points(raw_text, batch_index)


def extract_script_title(content: str, episode: int) -> str:
    for line in (content or "").splitlines():
        for rx in _TITLE_RES:
            m = rx.match(line)
            if m:
                title = m.group(1).strip().strip("[]【】")
                if title:
                    return title
    return f"第{episode}集"
