"""OpenAI client utilities and the generation-service wrapper.

Public API:
- get_client() -> client | None
- get_model() -> str
- complete(prompt, *, system, temperature, max_tokens, model) -> str
- generator_for(role) -> Callable[[str, str], str]

Every failure of the service call (missing credential, network, auth, quota,
timeout) surfaces as TransportError. Transient faults are retried with
exponential backoff inside a single call (AW_LLM_RETRIES); the agent loop
above never retries a TransportError itself.
"""
from __future__ import annotations

import hashlib
import os
import random
import time
from typing import Callable, Optional

import openai
from openai import AzureOpenAI, OpenAI

from .context import TransportError
from .env import env_for, env_int, env_str, get_request_timeout, mock_llm_enabled, normalize_base_url
from .logging import breadcrumb as _breadcrumb, log_run as _log_run
from .tokenizer import count_chat_tokens as _count_chat_tokens

Generator = Callable[[str, str], str]

_CLIENT = None  # type: ignore
_CLIENT_INFO = ""

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,  # includes APITimeoutError
    openai.RateLimitError,
    openai.InternalServerError,
)


def get_model() -> str:
    return env_str("AW_MODEL_DEFAULT") or os.getenv("OPENAI_MODEL", "gpt-4o-mini")


def reset_client() -> None:
    global _CLIENT, _CLIENT_INFO
    _CLIENT = None
    _CLIENT_INFO = ""


def get_client():
    """Return an OpenAI (or Azure OpenAI) client, or None when no credential is configured."""
    global _CLIENT, _CLIENT_INFO
    if _CLIENT is not None:
        return _CLIENT
    api_key = env_str("OPENAI_API_KEY")
    if not api_key:
        return None
    timeout = get_request_timeout()
    azure_endpoint = env_str("AZURE_OPENAI_ENDPOINT") or env_str("AZURE_OPENAI_API_BASE")
    if azure_endpoint:
        api_version = os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-01")
        ak = env_str("AZURE_OPENAI_API_KEY") or api_key
        _CLIENT = AzureOpenAI(azure_endpoint=azure_endpoint, api_version=api_version, api_key=ak, timeout=timeout, max_retries=0)
        _CLIENT_INFO = f"azure:{azure_endpoint}|v={api_version}"
        return _CLIENT
    base_url = env_str("OPENAI_BASE_URL") or env_str("OPENAI_API_BASE")
    if base_url:
        bu = normalize_base_url(base_url)
        _CLIENT = OpenAI(base_url=bu, api_key=api_key, timeout=timeout, max_retries=0)
        _CLIENT_INFO = f"base_url:{bu}"
    else:
        _CLIENT = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        _CLIENT_INFO = "default"
    return _CLIENT


def with_backoff(fn, *, retries: int = 2, base_delay: float = 1.0, jitter: float = 0.2):
    """Call fn, retrying transient OpenAI errors up to `retries` extra times."""
    attempt = 0
    while True:
        try:
            return fn()
        except _TRANSIENT_ERRORS as e:
            if attempt >= retries:
                raise
            delay = base_delay * (2 ** attempt) + random.random() * jitter
            _breadcrumb(f"llm:backoff attempt={attempt + 1} delay={delay:.2f}s err={type(e).__name__}")
            time.sleep(delay)
            attempt += 1


def _mock_response(prompt: str, system: Optional[str], temperature: float) -> str:
    head = (prompt[:220] + "...") if len(prompt) > 220 else prompt
    h = hashlib.sha1(prompt.encode("utf-8")).hexdigest()[:12]
    return f"[MOCK LLM RESPONSE] PASS\nSystem: {system or 'n/a'}\nTemp: {temperature}\nHash:{h}\n---\n{head}"


def complete(
    prompt: str,
    *,
    system: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: int = 4000,
    model: Optional[str] = None,
) -> str:
    """Chat completion against the configured service.

    Raises TransportError on any failure of the call, including a missing
    OPENAI_API_KEY (unless AW_MOCK_LLM=1 selects the offline mock).
    """
    if mock_llm_enabled():
        _breadcrumb("llm:mock-return")
        return _mock_response(prompt, system, temperature)
    client = get_client()
    if client is None:
        _breadcrumb("llm:no-client")
        raise TransportError("OPENAI_API_KEY is not set; the generation service is unavailable")

    model_name = model or get_model()
    try:
        ptoks = _count_chat_tokens(system or "", prompt, model_name)
    except Exception:  # diagnostics only
        ptoks = -1
    _log_run(
        f"LLM request | model={model_name} temp={temperature} max_tokens={max_tokens} "
        f"prompt_tokens={ptoks} chars={len(prompt) + len(system or '')} endpoint={_CLIENT_INFO}"
    )

    def _do_call() -> str:
        resp = client.chat.completions.create(
            model=model_name,
            messages=[
                {"role": "system", "content": system or "You are a helpful screenwriting assistant."},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=int(max_tokens),
        )
        usage = getattr(resp, "usage", None)
        if usage is not None:
            _log_run(
                f"LLM response | usage prompt={getattr(usage, 'prompt_tokens', None)} "
                f"completion={getattr(usage, 'completion_tokens', None)} total={getattr(usage, 'total_tokens', None)}"
            )
        return resp.choices[0].message.content or ""

    try:
        return with_backoff(_do_call, retries=env_int("AW_LLM_RETRIES", 2))
    except openai.OpenAIError as e:
        _breadcrumb(f"llm:error {type(e).__name__}")
        raise TransportError(f"{type(e).__name__}: {e}") from e


def generator_for(role: str, *, default_temp: float = 0.7, default_max_tokens: int = 4000) -> Generator:
    """Bind the per-role env settings into a generate(system, prompt) callable."""
    model, temp, max_tokens = env_for(role, default_temp=default_temp, default_max_tokens=default_max_tokens)

    def generate(system: str, prompt: str) -> str:
        _breadcrumb(f"llm:call role={role}")
        return complete(prompt, system=system, temperature=temp, max_tokens=max_tokens, model=model)

    return generate
