"""ProjectState aggregate and its reducer.

The state is immutable. Every change is an event applied by the pure
function reduce(state, event) -> state, so a session can be replayed
deterministically from its event log. The reducer enforces the aggregate
invariants and raises StateError for events that would break them:

- batch indexes are sequential and each batch's points carry its index;
- plot-point status only moves unused -> used;
- script episodes are gapless and strictly increasing (last + 1).
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Tuple, Union

from .batches import sort_chapters
from .context import DEFAULT_NOVEL_TYPE, StateError
from .env import DEFAULT_BATCH_SIZE
from .models import Chapter, PlotBatch, PlotPoint, ScriptFile, ScriptStatus

PointRef = Tuple[int, str]


@dataclass(frozen=True)
class ProjectState:
    title: str = ""
    novel_type: str = DEFAULT_NOVEL_TYPE
    description: str = ""
    chapters: Tuple[Chapter, ...] = ()
    batches: Tuple[PlotBatch, ...] = ()
    scripts: Tuple[ScriptFile, ...] = ()
    batch_size: int = DEFAULT_BATCH_SIZE

    @property
    def processed_batch_count(self) -> int:
        return len(self.batches)

    @property
    def last_episode(self) -> int:
        return self.scripts[-1].episode if self.scripts else 0

    def all_points(self) -> List[PlotPoint]:
        return [p for b in self.batches for p in b.points]

    def unused_points(self) -> List[PlotPoint]:
        return [p for p in self.all_points() if p.is_unused]

    def find_point(self, ref: PointRef) -> Optional[PlotPoint]:
        batch_index, point_id = ref
        if not (0 <= batch_index < len(self.batches)):
            return None
        for p in self.batches[batch_index].points:
            if p.id == point_id:
                return p
        return None

    def script(self, episode: int) -> Optional[ScriptFile]:
        for s in self.scripts:
            if s.episode == episode:
                return s
        return None


# ---------------------------
# Events
# ---------------------------

@dataclass(frozen=True)
class ProjectInfoUpdated:
    title: Optional[str] = None
    novel_type: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ChaptersAdded:
    chapters: Tuple[Chapter, ...]


@dataclass(frozen=True)
class BatchCommitted:
    batch: PlotBatch


@dataclass(frozen=True)
class PointsConsumed:
    refs: Tuple[PointRef, ...]


@dataclass(frozen=True)
class ScriptAppended:
    script: ScriptFile


@dataclass(frozen=True)
class ScriptEdited:
    episode: int
    content: str
    title: Optional[str] = None


@dataclass(frozen=True)
class ScriptReviewed:
    episode: int
    status: ScriptStatus
    report: str


Event = Union[
    ProjectInfoUpdated,
    ChaptersAdded,
    BatchCommitted,
    PointsConsumed,
    ScriptAppended,
    ScriptEdited,
    ScriptReviewed,
]


# ---------------------------
# Reducer
# ---------------------------

def _add_chapters(state: ProjectState, new: Iterable[Chapter]) -> ProjectState:
    # Chapters already covered by a batch keep their positions so every
    # batch index still resolves to the slice it was derived from.
    new = list(new)
    if not new:
        return state
    covered = state.processed_batch_count * state.batch_size
    if covered > len(state.chapters):
        # The last batch took a short slice; new chapters would silently
        # grow that slice and be skipped by the next one.
        raise StateError(
            f"batch {state.processed_batch_count - 1} covered a short slice; "
            "chapters cannot be added after it"
        )
    head = state.chapters[:covered]
    tail = sort_chapters(list(state.chapters[covered:]) + list(new))
    return replace(state, chapters=tuple(head) + tuple(tail))


def _commit_batch(state: ProjectState, batch: PlotBatch) -> ProjectState:
    expected = state.processed_batch_count
    if batch.index != expected:
        raise StateError(f"batch index {batch.index} committed out of sequence (expected {expected})")
    ids = set()
    for p in batch.points:
        if p.batch_index != batch.index:
            raise StateError(f"plot point {p.id} carries batch index {p.batch_index}, not {batch.index}")
        if p.id in ids:
            raise StateError(f"duplicate plot point id {p.id} in batch {batch.index}")
        ids.add(p.id)
    return replace(state, batches=state.batches + (batch,))


def _consume_points(state: ProjectState, refs: Iterable[PointRef]) -> ProjectState:
    wanted = {}
    for batch_index, point_id in refs:
        if state.find_point((batch_index, point_id)) is None:
            raise StateError(f"unknown plot point {point_id} in batch {batch_index}")
        wanted.setdefault(batch_index, set()).add(point_id)
    batches = list(state.batches)
    for batch_index, ids in wanted.items():
        b = batches[batch_index]
        points = tuple(p.mark_used() if p.id in ids else p for p in b.points)
        batches[batch_index] = replace(b, points=points)
    return replace(state, batches=tuple(batches))


def _append_script(state: ProjectState, script: ScriptFile) -> ProjectState:
    expected = state.last_episode + 1
    if script.episode != expected:
        raise StateError(f"script for episode {script.episode} appended out of sequence (expected {expected})")
    return replace(state, scripts=state.scripts + (script,))


def _update_script(state: ProjectState, episode: int, **changes) -> ProjectState:
    scripts = list(state.scripts)
    for i, s in enumerate(scripts):
        if s.episode == episode:
            scripts[i] = replace(s, **changes)
            return replace(state, scripts=tuple(scripts))
    raise StateError(f"no script for episode {episode}")


def reduce(state: ProjectState, event: Event) -> ProjectState:
    if isinstance(event, ProjectInfoUpdated):
        return replace(
            state,
            title=state.title if event.title is None else event.title,
            novel_type=state.novel_type if event.novel_type is None else event.novel_type,
            description=state.description if event.description is None else event.description,
        )
    if isinstance(event, ChaptersAdded):
        return _add_chapters(state, event.chapters)
    if isinstance(event, BatchCommitted):
        return _commit_batch(state, event.batch)
    if isinstance(event, PointsConsumed):
        return _consume_points(state, event.refs)
    if isinstance(event, ScriptAppended):
        return _append_script(state, event.script)
    if isinstance(event, ScriptEdited):
        changes = {"content": event.content, "status": ScriptStatus.DRAFT, "aligner_report": None}
        if event.title is not None:
            changes["title"] = event.title
        return _update_script(state, event.episode, **changes)
    if isinstance(event, ScriptReviewed):
        return _update_script(state, event.episode, status=event.status, aligner_report=event.report)
    raise StateError(f"unknown event type {type(event).__name__}")


def reduce_all(state: ProjectState, events: Iterable[Event]) -> ProjectState:
    for ev in events:
        state = reduce(state, ev)
    return state


def replay(events: Iterable[Event], *, batch_size: int = DEFAULT_BATCH_SIZE) -> ProjectState:
    return reduce_all(ProjectState(batch_size=batch_size), events)


def commit_script_events(script: ScriptFile) -> List[Event]:
    """Events that commit a generated script together with the points it consumed."""
    return [PointsConsumed(refs=script.point_refs), ScriptAppended(script=script)]
