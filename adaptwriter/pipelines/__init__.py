"""Pipeline modules (breakdown, script)."""

from .breakdown import BreakdownOutcome, run_breakdown_batch
from .script import ReviewOutcome, ScriptOutcome, review_script, run_script_episode

__all__ = [
    "BreakdownOutcome",
    "ReviewOutcome",
    "ScriptOutcome",
    "run_breakdown_batch",
    "run_script_episode",
    "review_script",
]
