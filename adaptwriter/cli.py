"""AdaptWriter CLI entrypoint.

Usage:
  adaptwriter breakdown <chapters_dir> [--project project.yaml] [--batches N] [--out DIR]
  adaptwriter adapt <chapters_dir> [--project project.yaml] [--episodes N] [--out DIR] [--max-retries K]
  adaptwriter env

State lives in memory for one invocation; results are exported as text
files at the end of the run (and also when a guidance condition stops it).
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Optional

from .agent_loop import ProgressEvent
from .artifacts import export_session
from .context import NOVEL_TYPES, AWError, GuidanceRequired, NoNewChapters, ProjectSettings
from .env import collect_program_env_snapshot, get_exports_dir, load_env
from .ingest import read_chapter_files
from .llm import get_model
from .logging import init_run_logs as _init_run_logs, log_error_base as _log_error_base, log_run as _log_run, log_warning as _log_warning
from .session import AdaptationSession
from .utils import to_text


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {n}")
    return n


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="adaptwriter", description="Adapt novel chapters into episodic webtoon scripts")
    sub = parser.add_subparsers(dest="cmd")

    def _common(p: argparse.ArgumentParser) -> None:
        p.add_argument("chapters_dir", help="Directory of chapter .txt files, e.g. novel/")
        p.add_argument("--project", dest="project", help="project.yaml with title / type / description")
        p.add_argument("--out", dest="out", help="Export directory (default: AW_EXPORTS_DIR or <base>/output)")
        p.add_argument("--max-retries", dest="max_retries", type=_positive_int, help="Worker/aligner attempts per cycle")
        p.add_argument("--log-llm", action="store_true", dest="log_llm", help="Log LLM prompts/responses")
        p.add_argument("--base", dest="base", help="Override AW_BASE_DIR for this run")

    p_bd = sub.add_parser("breakdown", help="Break chapters down into plot points")
    _common(p_bd)
    p_bd.add_argument("--batches", type=_positive_int, dest="batches", help="Maximum batches to process (default: all)")

    p_ad = sub.add_parser("adapt", help="Break down all chapters, then write episode scripts")
    _common(p_ad)
    p_ad.add_argument("--episodes", type=_positive_int, dest="episodes", help="Maximum episodes to write (default: until points run out)")

    sub.add_parser("env", help="Show effective configuration (secrets masked)")
    return parser.parse_args(argv)


def _print_progress(event: ProgressEvent) -> None:
    print(f"  [{event.phase.value} #{event.attempt}] {event.message}")


def _run_breakdowns(session: AdaptationSession, limit: Optional[int]) -> None:
    done = 0
    while limit is None or done < limit:
        index = session.state.processed_batch_count
        print(f"Breakdown batch {index + 1}...")
        outcome = session.breakdown_next_batch()
        if not outcome.committed:
            # Transport failure: the slice stays unprocessed; retrying now would hit the same fault.
            print(f"Batch {index + 1} failed: {outcome.result.report}")
            raise AWError(outcome.result.report)
        batch = outcome.batch
        print(f"Batch {index + 1} ({batch.chapter_range}) {outcome.result.status.value}: {len(batch.points)} plot point(s)")
        print(outcome.result.report)
        done += 1


def _run_scripts(session: AdaptationSession, limit: Optional[int]) -> None:
    done = 0
    while limit is None or done < limit:
        episode = session.state.last_episode + 1
        print(f"Script for episode {episode}...")
        outcome = session.generate_next_script()
        if not outcome.committed:
            print(f"Episode {episode} failed: {outcome.result.report}")
            raise AWError(outcome.result.report)
        print(f"Episode {episode} 「{outcome.script.title}」 {outcome.result.status.value}")
        print(outcome.result.report)
        done += 1


def main(argv: list[str] | None = None) -> int:
    load_env()
    ns = _parse_args(list(sys.argv[1:] if argv is None else argv))

    if ns.cmd is None:
        print("Usage: adaptwriter {breakdown,adapt,env} ...")
        return 1

    if ns.cmd == "env":
        print(to_text(collect_program_env_snapshot(get_model_cb=get_model)))
        return 0

    if getattr(ns, "base", None):
        os.environ["AW_BASE_DIR"] = str(ns.base)
    if getattr(ns, "log_llm", False):
        os.environ["AW_LOG_LLM"] = "1"
    _init_run_logs()

    try:
        settings = ProjectSettings.from_path(ns.project)
        records = read_chapter_files(ns.chapters_dir)
    except AWError as e:
        print(f"Error: {e}")
        return 2
    if not records:
        print(f"Error: no chapter files found in {ns.chapters_dir}")
        return 2
    if settings.novel_type not in NOVEL_TYPES:
        _log_warning(f"Unrecognized novel type '{settings.novel_type}'; passing it through unchanged")

    _log_run(f"=== START RUN === cmd={ns.cmd} chapters={len(records)} title={settings.title!r}")
    session = AdaptationSession(settings=settings, max_retries=ns.max_retries, on_event=_print_progress)
    session.add_chapters(records)
    out_dir = Path(ns.out) if ns.out else get_exports_dir()

    code = 0
    try:
        try:
            _run_breakdowns(session, ns.batches if ns.cmd == "breakdown" else None)
        except NoNewChapters as e:
            # Running out of chapters is the normal end of the breakdown phase.
            print(str(e))
        if ns.cmd == "adapt":
            _run_scripts(session, ns.episodes)
    except GuidanceRequired as e:
        print(str(e))
    except AWError as e:
        _log_error_base(str(e))
        code = 3

    written = export_session(session.state, out_dir)
    for p in written:
        print(f"Wrote {p}")
    _log_run(f"=== END RUN === code={code} batches={session.state.processed_batch_count} scripts={len(session.state.scripts)}")
    return code


if __name__ == "__main__":
    code = main()
    raise SystemExit(code)
