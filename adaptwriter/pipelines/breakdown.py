"""Breakdown pipeline: one batch of chapters -> one PlotBatch.

The pipeline never mutates state. It returns the events that commit its
result; a transport failure yields no events, so the same slice is offered
again on the next run.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..agent_loop import AgentResult, ProgressEvent, run_agent_loop
from ..batches import chapter_range, next_slice
from ..context import NoNewChapters
from ..env import ROLE_BREAKDOWN_ALIGNER, ROLE_BREAKDOWN_WORKER, get_max_retries
from ..llm import Generator
from ..logging import breadcrumb as _breadcrumb, log_warning as _log_warning
from ..models import BatchStatus, PlotBatch
from ..parser import PlotPointParser, RegexPlotPointParser
from ..prompts import build_breakdown_check_prompt, build_breakdown_prompt, system_prompt
from ..state import BatchCommitted, Event, ProjectState
from ..validation import validate_breakdown
from .common import llm_log_dir, logged_generator, resolve_generators


@dataclass(frozen=True)
class BreakdownOutcome:
    batch_index: int
    result: AgentResult
    batch: Optional[PlotBatch] = None
    events: List[Event] = field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.batch is not None


def first_untagged_episode(state: ProjectState) -> int:
    """Episode number the next breakdown batch should start tagging from."""
    episodes = [p.episode for p in state.all_points()]
    return (max(episodes) + 1) if episodes else 1


def run_breakdown_batch(
    state: ProjectState,
    *,
    generate: Optional[Generator] = None,
    parser: Optional[PlotPointParser] = None,
    max_retries: Optional[int] = None,
    on_event: Optional[Callable[[ProgressEvent], None]] = None,
) -> BreakdownOutcome:
    """Break down the next unprocessed chapter slice.

    Raises NoNewChapters when every chapter is already covered by a batch.
    """
    index = state.processed_batch_count
    chapters = next_slice(state.chapters, index, state.batch_size)
    if not chapters:
        raise NoNewChapters(index, len(state.chapters))
    parser = parser or RegexPlotPointParser()
    retries = max_retries if max_retries is not None else get_max_retries()
    gens = resolve_generators(ROLE_BREAKDOWN_WORKER, ROLE_BREAKDOWN_ALIGNER, generate)
    log_dir = llm_log_dir()
    rng = chapter_range(chapters)
    _breadcrumb(f"breakdown:start batch={index} chapters={rng}")

    result = run_agent_loop(
        build_breakdown_prompt(chapters, state.novel_type, first_untagged_episode(state)),
        system_prompt("breakdown_worker"),
        system_prompt("breakdown_aligner"),
        lambda output: build_breakdown_check_prompt(chapters, output),
        retries,
        generate=logged_generator(gens.worker, f"batch{index:02d}_worker", log_dir),
        aligner_generate=logged_generator(gens.aligner, f"batch{index:02d}_aligner", log_dir),
        on_event=on_event,
        context_tag=f"breakdown batch={index}",
    )
    if not result.outcome.committable:
        _log_warning(f"Breakdown of batch {index} ({rng}) not committed: {result.report}")
        return BreakdownOutcome(batch_index=index, result=result)

    points = parser.parse(result.content, index)
    ok, reason = validate_breakdown(result.content, len(points))
    if not ok:
        _log_warning(f"Breakdown of batch {index} ({rng}) yielded no plot points: {reason}")
    batch = PlotBatch(
        index=index,
        chapter_range=rng,
        content=result.content,
        points=tuple(points),
        status=BatchStatus.APPROVED if result.passed else BatchStatus.REJECTED,
        report=result.report,
    )
    _breadcrumb(f"breakdown:commit batch={index} points={len(points)} status={batch.status.value}")
    return BreakdownOutcome(batch_index=index, result=result, batch=batch, events=[BatchCommitted(batch=batch)])
