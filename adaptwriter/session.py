"""AdaptationSession: the single owner of a project's state during a run.

The session applies pipeline events through the reducer only after a cycle
has fully resolved, so readers of `session.state` always see a consistent
snapshot. A busy flag rejects a second cycle while one is in flight.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterable, List, Optional, Tuple

from .agent_loop import ProgressEvent
from .batches import make_chapters
from .context import ProjectSettings, SessionBusy
from .env import get_batch_size, get_max_retries
from .llm import Generator
from .logging import breadcrumb as _breadcrumb
from .models import ScriptFile
from .parser import PlotPointParser
from .pipelines import (
    BreakdownOutcome,
    ReviewOutcome,
    ScriptOutcome,
    review_script,
    run_breakdown_batch,
    run_script_episode,
)
from .state import (
    ChaptersAdded,
    Event,
    ProjectInfoUpdated,
    ProjectState,
    ScriptEdited,
    reduce,
)


class AdaptationSession:
    def __init__(
        self,
        *,
        settings: Optional[ProjectSettings] = None,
        generate: Optional[Generator] = None,
        parser: Optional[PlotPointParser] = None,
        max_retries: Optional[int] = None,
        batch_size: Optional[int] = None,
        on_event: Optional[Callable[[ProgressEvent], None]] = None,
    ):
        self.generate = generate
        self.parser = parser
        self.max_retries = max_retries if max_retries is not None else get_max_retries()
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.on_event = on_event
        self.busy = False
        self.events: List[Event] = []
        self._state = ProjectState(batch_size=batch_size or get_batch_size())
        if settings is not None:
            self.apply(ProjectInfoUpdated(
                title=settings.title,
                novel_type=settings.novel_type,
                description=settings.description,
            ))

    @property
    def state(self) -> ProjectState:
        return self._state

    def apply(self, event: Event) -> ProjectState:
        self._state = reduce(self._state, event)
        self.events.append(event)
        return self._state

    def apply_all(self, events: Iterable[Event]) -> ProjectState:
        # Reduce into a scratch state first so a failing event publishes nothing.
        events = list(events)
        state = self._state
        for ev in events:
            state = reduce(state, ev)
        self._state = state
        self.events.extend(events)
        return state

    @contextmanager
    def _cycle(self, label: str):
        if self.busy:
            raise SessionBusy(f"cannot start {label}: another generation cycle is in flight")
        self.busy = True
        _breadcrumb(f"session:cycle:start {label}")
        try:
            yield
        finally:
            self.busy = False
            _breadcrumb(f"session:cycle:end {label}")

    # ---------------------------
    # Operations
    # ---------------------------

    def add_chapters(self, records: Iterable[Tuple[str, str]]) -> ProjectState:
        """Ingest (name, content) pairs in upload sequence."""
        return self.apply(ChaptersAdded(chapters=tuple(make_chapters(records))))

    def breakdown_next_batch(self) -> BreakdownOutcome:
        with self._cycle("breakdown"):
            outcome = run_breakdown_batch(
                self._state,
                generate=self.generate,
                parser=self.parser,
                max_retries=self.max_retries,
                on_event=self.on_event,
            )
            self.apply_all(outcome.events)
        return outcome

    def generate_next_script(self) -> ScriptOutcome:
        with self._cycle("script"):
            outcome = run_script_episode(
                self._state,
                generate=self.generate,
                max_retries=self.max_retries,
                on_event=self.on_event,
            )
            self.apply_all(outcome.events)
        return outcome

    def check_script(self, episode: int) -> ReviewOutcome:
        with self._cycle("review"):
            outcome = review_script(self._state, episode, generate=self.generate, on_event=self.on_event)
            self.apply_all(outcome.events)
        return outcome

    def edit_script(self, episode: int, content: str, *, title: Optional[str] = None) -> ScriptFile:
        state = self.apply(ScriptEdited(episode=episode, content=content, title=title))
        script = state.script(episode)
        assert script is not None
        return script
