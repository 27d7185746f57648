"""Export of breakdown and script outputs to text files.

Exports are write-only snapshots for reading and editing by hand; they are
not read back into a session.
"""
from __future__ import annotations

from pathlib import Path
from typing import List

from .models import PlotBatch, PointStatus, ScriptFile
from .state import ProjectState
from .utils import save_text

_POINT_MARK = {PointStatus.UNUSED: "未用", PointStatus.USED: "已使用"}


def format_batch(batch: PlotBatch) -> str:
    lines = [
        f"## 第 {batch.index + 1} 批次 ({batch.chapter_range}章) [{batch.status.value}]",
        "",
    ]
    for p in batch.points:
        lines.append(f"- [{_POINT_MARK[p.status]}] {p.content.strip()}")
    if not batch.points:
        lines.append("(no plot points parsed)")
    lines.append("")
    lines.append("### Raw breakdown")
    lines.append("")
    lines.append(batch.content.strip())
    if batch.report:
        lines.append("")
        lines.append("### Breakdown Aligner report")
        lines.append("")
        lines.append(batch.report.strip())
    return "\n".join(lines) + "\n"


def format_breakdown(state: ProjectState) -> str:
    header = f"# {state.title or '未命名项目'} ({state.novel_type})\n\n"
    return header + "\n".join(format_batch(b) for b in state.batches)


def format_script(script: ScriptFile) -> str:
    text = script.content.rstrip() + "\n"
    if script.aligner_report:
        text += f"\n<!-- status: {script.status.value} -->\n<!-- Webtoon Aligner report:\n{script.aligner_report.strip()}\n-->\n"
    return text


def script_filename(episode: int) -> str:
    return f"episode_{episode:03d}.md"


def export_session(state: ProjectState, out_dir: str | Path) -> List[Path]:
    """Write breakdown.md and one episode_NNN.md per script; return the written paths."""
    out = Path(out_dir)
    written: List[Path] = []
    if state.batches:
        path = out / "breakdown.md"
        save_text(path, format_breakdown(state))
        written.append(path)
    for script in state.scripts:
        path = out / script_filename(script.episode)
        save_text(path, format_script(script))
        written.append(path)
    return written
