"""Anthropic messages provider."""

from typing import Any

from tldw.adapters.llm.base import LLMMessage, LLMResponse
from tldw.adapters.llm.http import HTTPChatProvider
from tldw.config import settings

ANTHROPIC_VERSION = "2023-06-01"
JSON_ONLY = "Respond with a single valid JSON object and nothing else."


class AnthropicProvider(HTTPChatProvider):
    """Claude models through ``/messages``.

    The messages API has no JSON response mode, so ``json_mode`` is
    expressed as an extra system instruction.
    """

    vendor = "anthropic"
    path = "/messages"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str = "https://api.anthropic.com/v1",
        timeout: float | None = None,
    ) -> None:
        super().__init__(
            api_key=api_key or settings.anthropic_api_key,
            model=model or settings.anthropic_model,
            base_url=base_url,
            timeout=timeout,
        )

    def build_headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def build_payload(
        self,
        messages: list[LLMMessage],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
    ) -> dict[str, Any]:
        system_parts = [m.content for m in messages if m.role == "system"]
        if json_mode:
            system_parts.append(JSON_ONLY)

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": m.role, "content": m.content} for m in messages if m.role != "system"
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        return payload

    def parse_response(self, data: dict[str, Any]) -> LLMResponse:
        blocks = data.get("content") or []
        usage = data.get("usage") or {}
        prompt_tokens = usage.get("input_tokens", 0)
        completion_tokens = usage.get("output_tokens", 0)
        return LLMResponse(
            content="".join(b.get("text", "") for b in blocks if b.get("type") == "text"),
            model=data.get("model", self.model),
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            raw_response=data,
            finish_reason=data.get("stop_reason"),
        )
