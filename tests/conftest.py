from dataclasses import replace
from pathlib import Path
from typing import List

import pytest

from adaptwriter import llm as aw_llm
from adaptwriter.batches import make_chapters
from adaptwriter.models import BatchStatus, PlotBatch, PlotPoint, PointStatus, ScriptFile
from adaptwriter.state import BatchCommitted, ChaptersAdded, ProjectState, reduce

# Load a test-specific environment file so pytest runs are consistent locally
try:
    from dotenv import load_dotenv
    _root = Path(__file__).resolve().parents[1]
    _env_test = _root / ".env.test"
    if _env_test.exists():
        load_dotenv(dotenv_path=_env_test, override=True)
except ImportError:
    pass


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    # Logs and exports go to a per-test sandbox; no real service is ever reached
    monkeypatch.setenv("AW_BASE_DIR", str(tmp_path / "base"))
    for k in ("OPENAI_API_KEY", "AW_MOCK_LLM", "AW_LOG_LLM", "AW_PROMPTS_DIR", "AW_MAX_RETRIES",
              "AW_BATCH_SIZE", "AW_EXPORTS_DIR", "OPENAI_BASE_URL", "AZURE_OPENAI_ENDPOINT"):
        monkeypatch.delenv(k, raising=False)
    aw_llm.reset_client()
    yield
    aw_llm.reset_client()


class ScriptedGenerator:
    """Fake generation service.

    Worker and aligner calls are told apart by the system prompt's first
    line. Queued items are returned in order; an Exception item is raised.
    When a queue runs dry its last item repeats.
    """

    def __init__(self, worker: List, aligner: List):
        self.worker = list(worker)
        self.aligner = list(aligner)
        self.worker_calls: List[str] = []
        self.aligner_calls: List[str] = []

    @staticmethod
    def is_aligner(system: str) -> bool:
        first = (system or "").strip().splitlines()[0] if (system or "").strip() else ""
        return "Aligner" in first

    def _next(self, queue: List):
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def __call__(self, system: str, prompt: str) -> str:
        if self.is_aligner(system):
            self.aligner_calls.append(prompt)
            return self._next(self.aligner)
        self.worker_calls.append(prompt)
        return self._next(self.worker)


@pytest.fixture()
def scripted():
    return ScriptedGenerator


def plot_line(n: int, episode: int, scene: str = "萧家大厅", action: str = "萧炎当众受辱") -> str:
    return f"【剧情{n}】{scene}，{action}，第{episode}集，状态：未用"


@pytest.fixture()
def make_line():
    return plot_line


def chapter_records(count: int):
    return [(f"第{i}章.txt", f"第{i}章正文内容。") for i in range(1, count + 1)]


@pytest.fixture()
def records():
    return chapter_records


def build_state(point_episodes_by_batch, *, chapters: int = 12, script_episodes=(), used=()) -> ProjectState:
    """State with one batch per entry of point_episodes_by_batch.

    `used` holds (batch_index, point_id) refs to mark as used.
    """
    state = reduce(ProjectState(), ChaptersAdded(chapters=tuple(make_chapters(chapter_records(chapters)))))
    for index, episodes in enumerate(point_episodes_by_batch):
        points = tuple(
            PlotPoint(
                id=f"剧情{n}",
                content=plot_line(n, ep),
                scene="场景",
                action="动作",
                episode=ep,
                batch_index=index,
                status=PointStatus.USED if (index, f"剧情{n}") in used else PointStatus.UNUSED,
            )
            for n, ep in enumerate(episodes, start=1)
        )
        batch = PlotBatch(index=index, chapter_range="", content="", points=points, status=BatchStatus.APPROVED)
        state = reduce(state, BatchCommitted(batch=batch))
    scripts = tuple(ScriptFile(episode=e, title=f"第{e}集", content="...") for e in script_episodes)
    return replace(state, scripts=scripts)


@pytest.fixture()
def state_builder():
    return build_state
