"""
Thin wrapper around the OpenAI chat completions API.
Domain modules (indicators, CV tailoring, interview plans, compensation, contracts) take an
`LLMClient` so tests can pass a fake with the same `complete`/`complete_json` surface.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from openai import APIConnectionError, APITimeoutError, InternalServerError, OpenAI

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (APIConnectionError, APITimeoutError, InternalServerError)
_MAX_ATTEMPTS = 3


class LLMError(RuntimeError):
    """Raised when no configured model produced usable content."""


@dataclass(frozen=True)
class LLMResult:
    content: str
    model: str
    tokens_used: int | None = None


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_json_content(text: str) -> dict[str, Any]:
    """Parse a model response as a JSON object, tolerating markdown fences."""

    parsed = json.loads(strip_code_fences(text))
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


class LLMClient:
    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = "gpt-4o",
        fallback_models: list[str] | None = None,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.fallback_models = [item for item in (fallback_models or []) if item and item != model]
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self._api_key:
                raise LLMError("OPENAI_API_KEY is not configured")
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def complete(
        self,
        *,
        messages: list[dict[str, Any]],
        temperature: float,
        json_mode: bool = False,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> LLMResult:
        """Run a chat completion, walking the fallback models on failure."""

        models = [model] if model else [self.model, *self.fallback_models]
        extra: dict[str, Any] = {}
        if json_mode:
            extra["response_format"] = {"type": "json_object"}
        if max_tokens is not None:
            extra["max_tokens"] = max_tokens

        last_error: str | None = None
        for candidate in models:
            for attempt in range(_MAX_ATTEMPTS):
                try:
                    response = self.client.chat.completions.create(
                        model=candidate,
                        messages=messages,
                        temperature=temperature,
                        **extra,
                    )
                except _TRANSIENT_ERRORS as exc:
                    last_error = f"{type(exc).__name__} on model {candidate}"
                    logger.warning(
                        "OpenAI request failed for model '%s' (attempt %s).", candidate, attempt + 1
                    )
                    if attempt < _MAX_ATTEMPTS - 1:
                        time.sleep(0.35 * (attempt + 1))
                        continue
                    break

                content = response.choices[0].message.content if response.choices else None
                if content and content.strip():
                    usage = getattr(response, "usage", None)
                    return LLMResult(
                        content=content.strip(),
                        model=candidate,
                        tokens_used=getattr(usage, "total_tokens", None),
                    )
                last_error = f"empty response from model {candidate}"
                logger.error("OpenAI returned empty content for model '%s'.", candidate)
                break

        raise LLMError(last_error or "No response from AI model")

    def complete_json(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        model: str | None = None,
    ) -> dict[str, Any]:
        result = self.complete(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            json_mode=True,
            model=model,
        )
        try:
            return parse_json_content(result.content)
        except ValueError as exc:
            raise LLMError(f"Failed to parse AI response: {exc}") from exc
