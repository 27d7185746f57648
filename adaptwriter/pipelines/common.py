"""Shared helpers for pipelines: generator resolution and LLM exchange logging."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..env import get_base_dir
from ..llm import Generator, generator_for
from ..logging import log_run as _log_run

__all__ = [
    "Generators",
    "resolve_generators",
    "logged_generator",
    "llm_log_dir",
]


@dataclass(frozen=True)
class Generators:
    """The worker and aligner callables for one stage."""
    worker: Generator
    aligner: Generator


def resolve_generators(worker_role: str, aligner_role: str, override: Optional[Generator] = None) -> Generators:
    """Use `override` for both roles when given (tests, scripted runs); else env-configured LLM calls."""
    if override is not None:
        return Generators(worker=override, aligner=override)
    return Generators(
        worker=generator_for(worker_role, default_temp=0.7, default_max_tokens=4000),
        aligner=generator_for(aligner_role, default_temp=0.2, default_max_tokens=1500),
    )


def llm_log_dir() -> Optional[Path]:
    """Directory for per-call exchange logs when AW_LOG_LLM=1, else None."""
    if os.getenv("AW_LOG_LLM", "0") != "1":
        return None
    return get_base_dir() / "llm_logs"


def logged_generator(generate: Generator, tag: str, log_dir: Optional[Path]) -> Generator:
    """Wrap a generator so each exchange is written to <log_dir>/<tag>_rN.txt."""
    if log_dir is None:
        return generate
    counter = {"n": 0}

    def _call(system: str, prompt: str) -> str:
        counter["n"] += 1
        out = generate(system, prompt)
        path = log_dir / f"{tag}_r{counter['n']}.txt"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                f.write("=== SYSTEM ===\n" + (system or "") + "\n\n")
                f.write("=== USER ===\n" + prompt + "\n\n")
                f.write("=== RESPONSE ===\n" + out + "\n")
        except OSError as e:
            _log_run(f"LLM log write failed | {path}: {e}")
        return out

    return _call
