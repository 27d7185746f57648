"""Logging helpers: run log, crash tracing breadcrumbs and warnings.

Public API:
- breadcrumb(label: str) -> None
- log_run(msg: str) -> None
- log_warning(msg: str) -> None
- log_error_base(msg: str) -> None
- init_run_logs(max_lines: int = 5000) -> None
"""
from __future__ import annotations

import os
import sys
import threading
import time
from pathlib import Path
from typing import Optional


def crash_trace_file() -> Optional[str]:
    return os.getenv("AW_CRASH_TRACE_FILE")


def _run_log_path() -> Path:
    from .env import get_base_dir  # lazy import to avoid cycles
    return get_base_dir() / "run.log"


def _timestamp() -> str:
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())


def log_run(msg: str) -> None:
    """Append a message to the unified base run.log file."""
    try:
        path = _run_log_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(f"[{_timestamp()}] {msg}\n")
    except OSError:
        pass


def breadcrumb(label: str) -> None:
    path = crash_trace_file()
    if path:
        line = f"{_timestamp()} pid={os.getpid()} tid={threading.get_ident()} | {label}\n"
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(line)
                f.flush()
        except OSError:
            pass
    log_run(f"BREADCRUMB | {label}")
    if os.getenv("AW_CRUMBS_STDERR", "0") == "1":
        sys.stderr.write(f"[crumb] {label}\n")
        sys.stderr.flush()


def log_warning(msg: str) -> None:
    """Log a warning message to stdout and base run.log."""
    text = f"WARNING: {msg}"
    print(text)
    log_run(text)


def log_error_base(msg: str) -> None:
    """Append an error message to <base>/run_error.log and run.log."""
    from .env import get_base_dir  # lazy import
    try:
        base = get_base_dir()
        base.mkdir(parents=True, exist_ok=True)
        with (base / "run_error.log").open("a", encoding="utf-8") as f:
            f.write(f"[{_timestamp()}] {msg}\n")
    except OSError:
        pass
    log_run(f"ERROR: {msg}")
    print(f"ERROR: {msg}")


def init_run_logs(max_lines: int = 5000) -> None:
    """Trim run.log to its last max_lines lines so it does not grow without bound."""
    path = _run_log_path()
    if not path.exists():
        return
    try:
        lines = path.read_text(encoding="utf-8").splitlines(keepends=True)
        if len(lines) > max_lines:
            path.write_text("".join(lines[-max_lines:]), encoding="utf-8")
    except OSError:
        pass
