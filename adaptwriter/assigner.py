"""Next-episode selection for script generation.

The next episode is always last script episode + 1. Its task is made of
every unused plot point tagged with that episode, plus the source text of
the batches those points came from. Whole batches are supplied even when
only some of their chapters are relevant; precision is not attempted.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from .batches import slice_for_batch
from .context import EpisodeMismatch, NoUnusedPoints
from .models import PlotPoint
from .state import PointRef, ProjectState


@dataclass(frozen=True)
class ScriptTask:
    episode: int
    points: Tuple[PlotPoint, ...]
    source_content: str
    batch_indexes: Tuple[int, ...] = ()

    @property
    def point_refs(self) -> Tuple[PointRef, ...]:
        return tuple((p.batch_index, p.id) for p in self.points)

    @property
    def plot_text(self) -> str:
        return "\n".join(p.content for p in self.points)


def next_episode(state: ProjectState) -> int:
    return state.last_episode + 1


def source_for_batches(state: ProjectState, batch_indexes) -> str:
    parts: List[str] = []
    for index in sorted(set(batch_indexes)):
        for chapter in slice_for_batch(state.chapters, index, state.batch_size):
            parts.append(chapter.content)
    return "\n\n".join(parts)


def next_task(state: ProjectState) -> ScriptTask:
    """Build the task for the next episode.

    Raises EpisodeMismatch when unused points exist but none carry the
    expected episode, and NoUnusedPoints when nothing unused is left.
    """
    episode = next_episode(state)
    unused = state.unused_points()
    candidates = tuple(p for p in unused if p.episode == episode)
    if not candidates:
        if unused:
            raise EpisodeMismatch(episode, [p.episode for p in unused])
        raise NoUnusedPoints(episode)
    indexes = tuple(sorted({p.batch_index for p in candidates}))
    return ScriptTask(
        episode=episode,
        points=candidates,
        source_content=source_for_batches(state, indexes),
        batch_indexes=indexes,
    )
