"""Token counting helpers using tiktoken when available.

- count_text_tokens(text: str, model: str) -> int
- count_chat_tokens(system: str, prompt: str, model: str) -> int

Used for request diagnostics in the run log. Without a usable encoding the
count falls back to a chars-per-token estimate controlled by
AW_CHARS_PER_TOKEN (default 1.5; CJK text packs far fewer characters per
token than English).
"""
from __future__ import annotations

import os
from functools import lru_cache

import tiktoken

_DEFAULT_CPT = 1.5


@lru_cache(maxsize=8)
def _encoding_for_model(model: str):
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        pass
    for name in ("o200k_base", "cl100k_base"):
        try:
            return tiktoken.get_encoding(name)
        except (KeyError, ValueError, OSError):
            continue
    return None


def _chars_per_token() -> float:
    try:
        cpt = float(os.getenv("AW_CHARS_PER_TOKEN", str(_DEFAULT_CPT)) or _DEFAULT_CPT)
    except ValueError:
        return _DEFAULT_CPT
    return cpt if cpt > 0 else _DEFAULT_CPT


def count_text_tokens(text: str, model: str) -> int:
    enc = _encoding_for_model(model)
    if enc is None:
        return int((len(text or "") / _chars_per_token()) + 0.5)
    return len(enc.encode(text or ""))


def count_chat_tokens(system: str, prompt: str, model: str) -> int:
    """Approximate prompt tokens for a system+user exchange.

    Each message carries a 3-token overhead and the reply is primed with 3 more.
    """
    total = 0
    for role, content in (("system", system), ("user", prompt)):
        total += 3
        total += count_text_tokens(role, model)
        total += count_text_tokens(content or "", model)
    return total + 3
