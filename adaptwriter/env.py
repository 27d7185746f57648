"""Environment helpers for AdaptWriter.

Centralizes reading environment variables, resolving per-role model/token
settings, masking secrets for logging, and resolving the base directory used
for logs and exports.
"""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv


# Roles of the two-stage pipeline; each can carry its own model settings.
ROLE_BREAKDOWN_WORKER = "BREAKDOWN_WORKER"
ROLE_BREAKDOWN_ALIGNER = "BREAKDOWN_ALIGNER"
ROLE_SCRIPT_WORKER = "SCRIPT_WORKER"
ROLE_WEBTOON_ALIGNER = "WEBTOON_ALIGNER"

DEFAULT_MAX_RETRIES = 3
DEFAULT_BATCH_SIZE = 6
DEFAULT_REQUEST_TIMEOUT = 120.0


def load_env() -> None:
    """Load environment variables from a local .env file if present.

    override=True lets the local .env take precedence over shell state.
    """
    load_dotenv(override=True)


def env_str(name: str) -> Optional[str]:
    val = os.getenv(name)
    if val is None or str(val).strip() == "":
        return None
    return val


def env_int(name: str, default: int) -> int:
    try:
        v = int(os.getenv(name, str(default)))
        if v <= 0:
            return default
        return v
    except (TypeError, ValueError):
        return default


def env_float(name: str, default: float) -> float:
    try:
        v = float(os.getenv(name, str(default)))
        if v <= 0:
            return default
        return v
    except (TypeError, ValueError):
        return default


def resolve_temp(role: str, default_temp: float) -> float:
    """Resolve temperature with precedence: AW_TEMP_{ROLE} -> AW_TEMP_DEFAULT -> default_temp."""
    for key in (f"AW_TEMP_{role}", "AW_TEMP_DEFAULT"):
        val = env_str(key)
        if val is not None:
            try:
                return float(val)
            except ValueError:
                continue
    return float(default_temp)


def resolve_max_tokens(role: str, default_max_tokens: int) -> int:
    """Resolve max tokens with precedence: AW_MAX_TOKENS_{ROLE} -> AW_MAX_TOKENS_DEFAULT -> default."""
    for key in (f"AW_MAX_TOKENS_{role}", "AW_MAX_TOKENS_DEFAULT"):
        val = env_str(key)
        if val is not None:
            try:
                v = int(val)
            except ValueError:
                continue
            if v > 0:
                return v
    return int(default_max_tokens)


def env_for(role: str, *, default_temp: float = 0.7, default_max_tokens: int = 4000) -> Tuple[Optional[str], float, int]:
    """Resolve (model, temperature, max_tokens) for a pipeline role.

    Precedence:
    - AW_MODEL_{ROLE}, AW_TEMP_{ROLE}, AW_MAX_TOKENS_{ROLE}
    - AW_TEMP_DEFAULT, AW_MAX_TOKENS_DEFAULT
    - Provided defaults

    A None model means "use get_model()".
    """
    model = env_str(f"AW_MODEL_{role}")
    return model, resolve_temp(role, default_temp), resolve_max_tokens(role, default_max_tokens)


def get_max_retries() -> int:
    return env_int("AW_MAX_RETRIES", DEFAULT_MAX_RETRIES)


def get_batch_size() -> int:
    return env_int("AW_BATCH_SIZE", DEFAULT_BATCH_SIZE)


def get_request_timeout() -> float:
    return env_float("AW_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)


def mock_llm_enabled() -> bool:
    return os.getenv("AW_MOCK_LLM", "0").strip() == "1"


# ---------------------------
# Path resolution
# ---------------------------

def get_base_dir() -> Path:
    """Resolve the base working directory for logs and exports.

    Env: AW_BASE_DIR
    Default: current working directory
    """
    base = env_str("AW_BASE_DIR")
    if base:
        p = Path(base)
        return p if p.is_absolute() else (Path.cwd() / p)
    return Path(".")


def get_prompts_dir() -> Optional[Path]:
    """Directory of prompt template overrides (AW_PROMPTS_DIR), relative to base if not absolute."""
    val = env_str("AW_PROMPTS_DIR")
    if val is None:
        return None
    p = Path(val)
    return p if p.is_absolute() else (get_base_dir() / p)


def get_exports_dir() -> Path:
    """Env: AW_EXPORTS_DIR (relative to base if not absolute). Default: <base>/output"""
    base = get_base_dir()
    val = env_str("AW_EXPORTS_DIR")
    if val is None:
        return base / "output"
    p = Path(val)
    return p if p.is_absolute() else (base / p)


# ---------------------------
# Diagnostics
# ---------------------------

def mask_env_value(k: str, v: Optional[str]) -> str:
    """Mask secrets in environment values while retaining a short suffix for debugging."""
    if v is None:
        return ""
    kl = (k or "").lower()
    if any(s in kl for s in ("key", "secret", "token", "password")):
        s = str(v)
        if len(s) <= 8:
            return "***"
        return ("*" * (len(s) - 4)) + s[-4:]
    return str(v)


def normalize_base_url(base_url: str) -> str:
    """Append /v1 to non-Azure base URLs that carry no version segment."""
    bu = base_url.strip()
    lower = bu.lower()
    is_azure = ("azure.com" in lower) or ("openai.azure" in lower)
    if (not is_azure) and not re.search(r"/v\d+/?$", bu):
        bu = bu.rstrip("/") + "/v1"
    return bu


def collect_program_env_snapshot(get_model_cb=None) -> Dict[str, Any]:
    """Collect AW_*, OPENAI_*, AZURE_OPENAI_* settings with secrets masked."""
    prefixes = ("AW_", "OPENAI_", "AZURE_OPENAI_")
    env_items: List[Tuple[str, str]] = []
    for k, v in os.environ.items():
        if any(k.startswith(p) for p in prefixes):
            env_items.append((k, mask_env_value(k, v)))
    env_items.sort(key=lambda kv: kv[0])
    derived: Dict[str, Any] = {
        "max_retries": get_max_retries(),
        "batch_size": get_batch_size(),
        "request_timeout": get_request_timeout(),
        "mock_llm": mock_llm_enabled(),
    }
    base_url = env_str("OPENAI_BASE_URL") or env_str("OPENAI_API_BASE")
    if base_url:
        derived["base_url"] = normalize_base_url(base_url)
    if get_model_cb is not None:
        derived["model_default"] = get_model_cb()
    return {"env": dict(env_items), "derived": derived}
