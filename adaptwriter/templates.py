"""Template application and prompt-override lookup.

Prompts are plain text with bracketed placeholders such as [CHAPTERS].
Every built-in prompt can be replaced by a file of the same name in
AW_PROMPTS_DIR (for example breakdown_worker_prompt.md).
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict

from .env import get_prompts_dir
from .logging import breadcrumb as _breadcrumb
from .utils import read_text


def apply_template_text(template: str, replacements: Dict[str, str]) -> str:
    for k, v in replacements.items():
        template = template.replace(k, v)
    return template


def prompt_key_from_filename(filename: str) -> str:
    base = Path(filename).name
    if base.lower().endswith(".md"):
        base = base[:-3]
    if base.lower().endswith("_prompt"):
        base = base[:-7]
    return re.sub(r"[^A-Za-z0-9]+", "_", base).strip("_").upper()


def resolve_template(filename: str, default: str) -> str:
    """Return the override from AW_PROMPTS_DIR when present, else the built-in text."""
    prompts_dir = get_prompts_dir()
    if prompts_dir is not None:
        path = prompts_dir / filename
        if path.exists():
            _breadcrumb(f"prompt:override {prompt_key_from_filename(filename)} path={path}")
            return read_text(path)
    return default


def render(filename: str, default: str, replacements: Dict[str, str]) -> str:
    return apply_template_text(resolve_template(filename, default), replacements)
