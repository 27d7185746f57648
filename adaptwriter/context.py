"""Error types, YAML loading and project settings.

Contract:
- ProjectSettings.from_path(path) -> ProjectSettings
- load_yaml(path: str) -> dict | list | scalar

This is the only module that performs YAML reads during a run.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .logging import breadcrumb as _breadcrumb


class AWError(Exception):
    pass


class MissingFileError(AWError):
    pass


class InvalidYAMLError(AWError):
    pass


class TransportError(AWError):
    """The generation service call itself failed (network, auth, quota, timeout, missing key)."""
    pass


class StateError(AWError):
    """An event would violate a ProjectState invariant. Indicates a programming error."""
    pass


class SessionBusy(AWError):
    """A generation cycle is already in flight for this session."""
    pass


class GuidanceRequired(AWError):
    """Raised to stop gracefully when the user has to act before the pipeline can continue.

    Handlers should catch this at the top level, show the message, and exit
    cleanly without treating it as an error condition.
    """
    pass


class NoNewChapters(GuidanceRequired):
    def __init__(self, processed_batches: int, chapter_count: int):
        self.processed_batches = processed_batches
        self.chapter_count = chapter_count
        super().__init__(
            f"No new chapters to break down: {chapter_count} chapter(s) already covered by "
            f"{processed_batches} batch(es). Upload more chapters first."
        )


class EpisodeMismatch(GuidanceRequired):
    def __init__(self, episode: int, available_episodes):
        self.episode = episode
        self.available_episodes = sorted(set(available_episodes))
        listed = ", ".join(str(e) for e in self.available_episodes)
        super().__init__(
            f"No unused plot points are tagged for episode {episode}, but unused points exist for "
            f"episode(s) {listed}. Fix the episode tagging in the breakdown."
        )


class NoUnusedPoints(GuidanceRequired):
    def __init__(self, episode: int):
        self.episode = episode
        super().__init__(
            f"No unused plot points left for episode {episode}. Run the breakdown on more chapters first."
        )


def load_yaml(path: str):
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except FileNotFoundError:
        _breadcrumb(f"yaml:error:not_found:{path}")
        raise MissingFileError(f"Required file not found: {path}")
    except OSError as e:
        _breadcrumb(f"yaml:error:read_failure:{path}")
        raise AWError(f"Unable to read file {path}: {e}")
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        _breadcrumb(f"yaml:error:invalid_yaml:{path}")
        raise InvalidYAMLError(f"Invalid YAML in {path}: {e}")
    _breadcrumb(f"yaml:parsed_ok:{path}")
    return data


NOVEL_TYPES = ("玄幻", "武侠", "都市", "言情", "古言", "悬疑", "推理", "科幻", "末世", "重生")
DEFAULT_NOVEL_TYPE = "玄幻"


@dataclass(frozen=True)
class ProjectSettings:
    title: str = ""
    novel_type: str = DEFAULT_NOVEL_TYPE
    description: str = ""

    @classmethod
    def from_path(cls, path: Optional[str]) -> "ProjectSettings":
        """Read project.yaml (title / type / description). A missing path yields defaults."""
        if not path:
            return cls()
        if not Path(path).exists():
            raise MissingFileError(f"Missing project settings file: {path}")
        data = load_yaml(path)
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise InvalidYAMLError(f"Project settings in {path} must be a mapping")
        novel_type = str(data.get("type") or data.get("novel_type") or DEFAULT_NOVEL_TYPE).strip()
        return cls(
            title=str(data.get("title") or "").strip(),
            novel_type=novel_type,
            description=str(data.get("description") or "").strip(),
        )
