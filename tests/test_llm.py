import pytest

from adaptwriter import llm
from adaptwriter.context import TransportError
from adaptwriter.env import (
    ROLE_BREAKDOWN_ALIGNER,
    ROLE_SCRIPT_WORKER,
    collect_program_env_snapshot,
    env_for,
    get_max_retries,
    get_request_timeout,
    mask_env_value,
    normalize_base_url,
)
from adaptwriter.pipelines.common import resolve_generators
from adaptwriter.tokenizer import count_chat_tokens, count_text_tokens


def test_missing_key_is_a_transport_error():
    assert llm.get_client() is None
    with pytest.raises(TransportError) as ei:
        llm.complete("hello", system="sys")
    assert "OPENAI_API_KEY" in str(ei.value)


def test_mock_mode_answers_offline(monkeypatch):
    monkeypatch.setenv("AW_MOCK_LLM", "1")
    out = llm.complete("写第一集", system="You are the \"Webtoon Aligner\" Sub-Agent.")
    assert out.startswith("[MOCK LLM RESPONSE] PASS")
    assert "写第一集" in out


def test_env_for_precedence(monkeypatch):
    assert env_for(ROLE_SCRIPT_WORKER) == (None, 0.7, 4000)
    monkeypatch.setenv("AW_TEMP_DEFAULT", "0.5")
    monkeypatch.setenv("AW_MAX_TOKENS_DEFAULT", "2000")
    assert env_for(ROLE_SCRIPT_WORKER) == (None, 0.5, 2000)
    monkeypatch.setenv("AW_MODEL_SCRIPT_WORKER", "gpt-4o")
    monkeypatch.setenv("AW_TEMP_SCRIPT_WORKER", "0.9")
    monkeypatch.setenv("AW_MAX_TOKENS_SCRIPT_WORKER", "3000")
    assert env_for(ROLE_SCRIPT_WORKER) == ("gpt-4o", 0.9, 3000)
    # other roles still fall back to the defaults
    assert env_for(ROLE_BREAKDOWN_ALIGNER, default_temp=0.2) == (None, 0.5, 2000)


def test_invalid_numeric_settings_fall_back(monkeypatch):
    monkeypatch.setenv("AW_MAX_RETRIES", "zero")
    monkeypatch.setenv("AW_REQUEST_TIMEOUT", "-5")
    assert get_max_retries() == 3
    assert get_request_timeout() == 120.0


def test_generator_for_binds_role_settings(monkeypatch):
    calls = []

    def fake_complete(prompt, *, system=None, temperature=0.7, max_tokens=4000, model=None):
        calls.append((system, prompt, temperature, max_tokens, model))
        return "ok"

    monkeypatch.setattr(llm, "complete", fake_complete)
    monkeypatch.setenv("AW_MODEL_BREAKDOWN_ALIGNER", "gpt-4o-mini")
    gens = resolve_generators("BREAKDOWN_WORKER", ROLE_BREAKDOWN_ALIGNER)
    assert gens.worker("w-sys", "w-prompt") == "ok"
    assert gens.aligner("a-sys", "a-prompt") == "ok"
    assert calls[0] == ("w-sys", "w-prompt", 0.7, 4000, None)
    assert calls[1] == ("a-sys", "a-prompt", 0.2, 1500, "gpt-4o-mini")


def test_service_errors_become_transport_errors(monkeypatch):
    import openai

    class FailingCompletions:
        def create(self, **kwargs):
            raise openai.OpenAIError("invalid api key")

    class FakeClient:
        class chat:
            completions = FailingCompletions()

    monkeypatch.setattr(llm, "get_client", lambda: FakeClient())
    with pytest.raises(TransportError) as ei:
        llm.complete("p", system="s", model="gpt-4o-mini")
    assert "invalid api key" in str(ei.value)


def test_successful_completion_returns_message(monkeypatch):
    class Msg:
        content = "✅ PASS"

    class Choice:
        message = Msg()

    class Resp:
        choices = [Choice()]
        usage = None

    class Completions:
        def __init__(self):
            self.kwargs = None

        def create(self, **kwargs):
            self.kwargs = kwargs
            return Resp()

    completions = Completions()

    class FakeClient:
        class chat:
            pass

    FakeClient.chat.completions = completions
    monkeypatch.setattr(llm, "get_client", lambda: FakeClient())
    assert llm.complete("p", system="s", temperature=0.2, max_tokens=100, model="m") == "✅ PASS"
    assert completions.kwargs["messages"][0] == {"role": "system", "content": "s"}
    assert completions.kwargs["temperature"] == 0.2
    assert completions.kwargs["max_tokens"] == 100


def test_with_backoff_retries_transient_errors(monkeypatch):
    import httpx
    import openai

    monkeypatch.setattr(llm.time, "sleep", lambda s: None)
    attempts = {"n": 0}

    def flaky():
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise openai.APIConnectionError(request=httpx.Request("POST", "https://example.invalid"))
        return "done"

    assert llm.with_backoff(flaky, retries=2) == "done"
    assert attempts["n"] == 3


def test_masking_and_base_url():
    assert mask_env_value("OPENAI_API_KEY", "sk-1234567890abcd") == "*************abcd"
    assert mask_env_value("AW_MODEL_DEFAULT", "gpt-4o") == "gpt-4o"
    assert normalize_base_url("http://localhost:8000") == "http://localhost:8000/v1"
    assert normalize_base_url("http://localhost:8000/v1") == "http://localhost:8000/v1"


def test_env_snapshot_masks_secrets(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-abcdefghijklmnop")
    snap = collect_program_env_snapshot(get_model_cb=llm.get_model)
    assert snap["env"]["OPENAI_API_KEY"].endswith("mnop")
    assert "abcdefgh" not in snap["env"]["OPENAI_API_KEY"]
    assert snap["derived"]["batch_size"] == 6


def test_token_counts_are_positive():
    assert count_text_tokens("萧炎当众受辱", "gpt-4o-mini") > 0
    assert count_chat_tokens("system", "prompt", "gpt-4o-mini") > count_text_tokens("prompt", "gpt-4o-mini")
