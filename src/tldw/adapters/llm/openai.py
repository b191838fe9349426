"""OpenAI chat completions provider."""

from typing import Any

from tldw.adapters.llm.base import LLMMessage, LLMResponse
from tldw.adapters.llm.http import HTTPChatProvider
from tldw.config import settings


class OpenAIProvider(HTTPChatProvider):
    """GPT models through ``/chat/completions``."""

    vendor = "openai"
    path = "/chat/completions"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        timeout: float | None = None,
    ) -> None:
        super().__init__(
            api_key=api_key or settings.openai_api_key,
            model=model or settings.openai_model,
            base_url=base_url,
            timeout=timeout,
        )

    def build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(
        self,
        messages: list[LLMMessage],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    def parse_response(self, data: dict[str, Any]) -> LLMResponse:
        choice = data["choices"][0]
        usage = data.get("usage") or {}
        return LLMResponse(
            content=choice["message"]["content"] or "",
            model=data.get("model", self.model),
            usage={
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
                "total_tokens": usage.get("total_tokens", 0),
            },
            raw_response=data,
            finish_reason=choice.get("finish_reason"),
        )
