"""Script pipeline: next episode task -> ScriptFile, and standalone aligner re-checks.

A generated script is committed (and its plot points marked used) only when
the agent loop resolved as accepted or exhausted. Transport failures commit
nothing and leave every point unused.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..agent_loop import REPORT_VALIDATION_ERROR, AgentResult, Phase, ProgressEvent, run_agent_loop
from ..assigner import ScriptTask, next_task
from ..context import StateError, TransportError
from ..env import ROLE_SCRIPT_WORKER, ROLE_WEBTOON_ALIGNER, get_max_retries
from ..llm import Generator
from ..logging import breadcrumb as _breadcrumb, log_warning as _log_warning
from ..models import ScriptFile, ScriptStatus
from ..parser import extract_script_title
from ..prompts import build_script_check_prompt, build_script_prompt, system_prompt
from ..state import Event, ProjectState, ScriptReviewed, commit_script_events
from ..validation import verdict_passes
from .common import llm_log_dir, logged_generator, resolve_generators


@dataclass(frozen=True)
class ScriptOutcome:
    task: ScriptTask
    result: AgentResult
    script: Optional[ScriptFile] = None
    events: List[Event] = field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.script is not None


@dataclass(frozen=True)
class ReviewOutcome:
    episode: int
    report: str
    status: Optional[ScriptStatus] = None
    events: List[Event] = field(default_factory=list)


def run_script_episode(
    state: ProjectState,
    *,
    generate: Optional[Generator] = None,
    max_retries: Optional[int] = None,
    on_event: Optional[Callable[[ProgressEvent], None]] = None,
) -> ScriptOutcome:
    """Write the next episode.

    Raises EpisodeMismatch / NoUnusedPoints (from the assigner) before any
    generation call is made.
    """
    task = next_task(state)
    retries = max_retries if max_retries is not None else get_max_retries()
    gens = resolve_generators(ROLE_SCRIPT_WORKER, ROLE_WEBTOON_ALIGNER, generate)
    log_dir = llm_log_dir()
    plot_text = task.plot_text
    _breadcrumb(f"script:start episode={task.episode} points={len(task.points)} batches={list(task.batch_indexes)}")

    result = run_agent_loop(
        build_script_prompt(task.episode, plot_text, task.source_content),
        system_prompt("script_worker"),
        system_prompt("webtoon_aligner"),
        lambda output: build_script_check_prompt(plot_text, output),
        retries,
        generate=logged_generator(gens.worker, f"ep{task.episode:03d}_worker", log_dir),
        aligner_generate=logged_generator(gens.aligner, f"ep{task.episode:03d}_aligner", log_dir),
        on_event=on_event,
        context_tag=f"script episode={task.episode}",
    )
    if not result.outcome.committable:
        _log_warning(f"Episode {task.episode} not committed; plot points stay unused: {result.report}")
        return ScriptOutcome(task=task, result=result)

    script = ScriptFile(
        episode=task.episode,
        title=extract_script_title(result.content, task.episode),
        content=result.content,
        status=ScriptStatus.APPROVED if result.passed else ScriptStatus.REJECTED,
        aligner_report=result.report,
        point_refs=task.point_refs,
    )
    _breadcrumb(f"script:commit episode={script.episode} status={script.status.value}")
    return ScriptOutcome(task=task, result=result, script=script, events=commit_script_events(script))


def review_script(
    state: ProjectState,
    episode: int,
    *,
    generate: Optional[Generator] = None,
    on_event: Optional[Callable[[ProgressEvent], None]] = None,
) -> ReviewOutcome:
    """Run a single aligner pass over an existing (possibly hand-edited) script."""
    script = state.script(episode)
    if script is None:
        raise StateError(f"no script for episode {episode}")
    points = [state.find_point(ref) for ref in script.point_refs]
    plot_text = "\n".join(p.content for p in points if p is not None)
    aligner = resolve_generators(ROLE_SCRIPT_WORKER, ROLE_WEBTOON_ALIGNER, generate).aligner

    if on_event is not None:
        on_event(ProgressEvent(phase=Phase.ALIGNER, attempt=1, message="Aligner: Checking quality..."))
    try:
        report = aligner(system_prompt("webtoon_aligner"), build_script_check_prompt(plot_text, script.content)) or ""
    except TransportError as e:
        _log_warning(f"Review of episode {episode} failed: {e}")
        return ReviewOutcome(episode=episode, report=f"{REPORT_VALIDATION_ERROR}: {e}")
    status = ScriptStatus.APPROVED if verdict_passes(report) else ScriptStatus.REJECTED
    return ReviewOutcome(
        episode=episode,
        report=report,
        status=status,
        events=[ScriptReviewed(episode=episode, status=status, report=report)],
    )
