"""OpenAI LLM client wrapper.

- Forces structured (JSON) output and validates it into HomepageContentResult
- Retries, overall timeout and a per-request cost cap
- Provider injection removes the network dependency in tests
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from homepage.models.domain import HomepageContentResult, HomepageInput
from homepage.prompts.templates import build_homepage_messages
from llm.settings import LLMSettings, get_llm_settings


class LLMError(Exception):
    """Base error for LLM calls."""


class TransientLLMError(LLMError):
    """Temporary failure (retryable)."""


class PermanentLLMError(LLMError):
    """Permanent failure (not retryable)."""


ProviderFn = Callable[[Dict[str, Any]], Dict[str, Any]]


_PRICE_PER_1K_TOKENS_USD: Dict[str, Dict[str, float]] = {
    "gpt-4o-mini": {"prompt": 0.00015, "completion": 0.0006},
    "gpt-4o": {"prompt": 0.0025, "completion": 0.0100},
}

_CODE_FENCE = re.compile(r"```(?:json)?\n?")


def _estimate_cost_usd(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    price = _PRICE_PER_1K_TOKENS_USD.get(model, _PRICE_PER_1K_TOKENS_USD["gpt-4o-mini"])
    return (
        (prompt_tokens / 1000.0) * price["prompt"]
        + (completion_tokens / 1000.0) * price["completion"]
    )


def strip_code_fences(content: str) -> str:
    return _CODE_FENCE.sub("", content).strip()


def _load_structured_content(content: str, attempts_left: int) -> Dict[str, Any]:
    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as exc:
        if attempts_left > 0:
            raise TransientLLMError("could not parse LLM response as JSON") from exc
        raise PermanentLLMError("could not parse LLM response as JSON") from exc
    if not isinstance(data, dict):
        raise PermanentLLMError("LLM response JSON is not an object")
    return data


@dataclass(frozen=True)
class OpenAIClient:
    settings: LLMSettings
    provider: Optional[ProviderFn] = None

    @classmethod
    def from_env(cls, provider: Optional[ProviderFn] = None) -> "OpenAIClient":
        return cls(get_llm_settings(), provider=provider)

    def _get_provider(self) -> ProviderFn:
        if self.provider is not None:
            return self.provider
        from openai import OpenAI

        client = OpenAI(
            api_key=self.settings.openai_api_key,
            timeout=float(self.settings.homepage_request_timeout_seconds),
        )

        def _call(payload: Dict[str, Any]) -> Dict[str, Any]:  # pragma: no cover - network
            resp = client.chat.completions.create(**payload)
            return {
                "choices": [
                    {
                        "message": {"content": resp.choices[0].message.content},
                    }
                ],
                "usage": {
                    "prompt_tokens": getattr(resp.usage, "prompt_tokens", 0),
                    "completion_tokens": getattr(resp.usage, "completion_tokens", 0),
                },
                "model": resp.model,
            }

        return _call

    def _build_payload(self, inp: HomepageInput) -> Dict[str, Any]:
        return {
            "model": self.settings.homepage_model,
            "messages": build_homepage_messages(inp),
            "temperature": float(self.settings.homepage_temperature),
            "max_tokens": int(self.settings.homepage_max_tokens),
            "response_format": {"type": "json_object"},
        }

    def generate_homepage(self, inp: HomepageInput) -> HomepageContentResult:
        payload = self._build_payload(inp)
        provider = self._get_provider()
        max_attempts = int(self.settings.homepage_retry_max_attempts)

        attempts = 0
        last_exc: Optional[Exception] = None
        start = time.monotonic()
        while attempts < max_attempts:
            attempts += 1
            try:
                resp = provider(payload)
                model = resp.get("model") or self.settings.homepage_model
                usage = resp.get("usage") or {}
                prompt_tokens = int(usage.get("prompt_tokens", 0))
                completion_tokens = int(usage.get("completion_tokens", 0))
                cost = _estimate_cost_usd(model, prompt_tokens, completion_tokens)
                if cost > float(self.settings.homepage_cost_limit_usd):
                    raise PermanentLLMError("LLM cost limit exceeded")

                content = resp.get("choices", [{}])[0].get("message", {}).get("content") or ""
                data = _load_structured_content(content, max_attempts - attempts)
                try:
                    return HomepageContentResult(
                        title=str(data.get("title") or ""),
                        description=str(data.get("description") or ""),
                        llm_model=model,
                        llm_tokens_prompt=prompt_tokens,
                        llm_tokens_completion=completion_tokens,
                        llm_cost=cost,
                    )
                except ValidationError as exc:
                    raise PermanentLLMError(f"LLM response failed validation: {exc.error_count()} error(s)") from exc
            except TransientLLMError as exc:
                last_exc = exc
                continue
            finally:
                elapsed = time.monotonic() - start
                if elapsed > float(self.settings.homepage_request_timeout_seconds):
                    raise TransientLLMError("LLM request timeout exceeded")

        assert last_exc is not None
        raise TransientLLMError(f"LLM retry limit exceeded: {last_exc}")
