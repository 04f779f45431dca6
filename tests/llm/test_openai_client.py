from __future__ import annotations

import json
from typing import Any, Dict

import pytest

from homepage.models.domain import HeadlineItem, HomepageInput
from llm.client.openai_client import (
    LLMError,
    OpenAIClient,
    PermanentLLMError,
    TransientLLMError,
    strip_code_fences,
)
from llm.settings import get_llm_settings, reset_llm_settings_cache


def _inp() -> HomepageInput:
    items = [
        HeadlineItem(article_id="ni1", title="Dune 3 sets a release date", text="Warner confirmed the date."),
        HeadlineItem(article_id="ni2", title="Festival lineup announced", text="Venice reveals its slate."),
    ]
    return HomepageInput(items=items)


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    reset_llm_settings_cache()
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-123")
    monkeypatch.setenv("HOMEPAGE_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("HOMEPAGE_MAX_TOKENS", "256")
    monkeypatch.setenv("HOMEPAGE_TEMPERATURE", "0.2")
    monkeypatch.setenv("HOMEPAGE_REQUEST_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("HOMEPAGE_RETRY_MAX_ATTEMPTS", "1")
    monkeypatch.setenv("HOMEPAGE_COST_LIMIT_USD", "0.05")
    yield
    reset_llm_settings_cache()


def _response(content: str, prompt_tokens: int = 300, completion_tokens: int = 150) -> Dict[str, Any]:
    return {
        "choices": [{"message": {"content": content}}],
        "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
        "model": "gpt-4o-mini",
    }


def _make_provider_ok(_: Dict[str, Any]) -> Dict[str, Any]:
    data = {
        "title": "Dune 3 dates its desert return as Venice unveils a packed festival slate",
        "description": "Warner locks in a release date for the next Dune chapter while Venice reveals a lineup full of awards hopefuls.",
    }
    return _response(json.dumps(data))


def test_generate_homepage_success():
    client = OpenAIClient.from_env(provider=_make_provider_ok)
    res = client.generate_homepage(_inp())
    assert res.title.startswith("Dune 3")
    assert res.description.startswith("Warner")
    assert res.llm_tokens_prompt == 300
    assert res.llm_model == "gpt-4o-mini"
    assert 0.0 <= res.llm_cost < 0.05


def test_payload_requests_json_object_and_includes_articles():
    seen: Dict[str, Any] = {}

    def provider(payload: Dict[str, Any]) -> Dict[str, Any]:
        seen.update(payload)
        return _make_provider_ok(payload)

    OpenAIClient.from_env(provider=provider).generate_homepage(_inp())

    assert seen["model"] == "gpt-4o-mini"
    assert seen["max_tokens"] == 256
    assert seen["response_format"] == {"type": "json_object"}
    user = seen["messages"][-1]["content"]
    assert user.startswith("Analyze these movie news articles:")
    assert "Dune 3 sets a release date" in user


def test_code_fenced_response_is_accepted():
    def provider(_: Dict[str, Any]) -> Dict[str, Any]:
        body = json.dumps({"title": "Big week at the box office", "description": "Three openings fight for the top spot."})
        return _response(f"```json\n{body}\n```")

    res = OpenAIClient.from_env(provider=provider).generate_homepage(_inp())
    assert res.title == "Big week at the box office"


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_retry_then_success(monkeypatch):
    monkeypatch.setenv("HOMEPAGE_RETRY_MAX_ATTEMPTS", "2")
    reset_llm_settings_cache()
    calls = {"n": 0}

    def provider(payload: Dict[str, Any]) -> Dict[str, Any]:
        calls["n"] += 1
        if calls["n"] == 1:
            return _response("not-json", 100, 10)
        return _make_provider_ok(payload)

    res = OpenAIClient.from_env(provider=provider).generate_homepage(_inp())
    assert calls["n"] == 2
    assert res.title.startswith("Dune 3")


def test_invalid_json_on_last_attempt_is_permanent():
    def provider(_: Dict[str, Any]) -> Dict[str, Any]:
        return _response("not-json")

    with pytest.raises(PermanentLLMError):
        OpenAIClient.from_env(provider=provider).generate_homepage(_inp())


def test_blank_fields_fail_validation():
    def provider(_: Dict[str, Any]) -> Dict[str, Any]:
        return _response(json.dumps({"title": "  ", "description": "ok"}))

    with pytest.raises(PermanentLLMError):
        OpenAIClient.from_env(provider=provider).generate_homepage(_inp())


def test_cost_limit_exceeded():
    def provider(_: Dict[str, Any]) -> Dict[str, Any]:
        return _response(json.dumps({"title": "t", "description": "d"}), 1_000_000, 1_000_000)

    with pytest.raises(PermanentLLMError) as exc:
        OpenAIClient.from_env(provider=provider).generate_homepage(_inp())
    assert "cost limit" in str(exc.value)


def test_transient_provider_errors_exhaust_retries():
    def provider(_: Dict[str, Any]) -> Dict[str, Any]:
        raise TransientLLMError("rate limited")

    with pytest.raises(TransientLLMError):
        OpenAIClient.from_env(provider=provider).generate_homepage(_inp())
    assert issubclass(TransientLLMError, LLMError)


def test_missing_api_key_fails_settings(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "   ")
    reset_llm_settings_cache()

    with pytest.raises(RuntimeError):
        get_llm_settings()
