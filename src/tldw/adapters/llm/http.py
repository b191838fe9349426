"""Shared request flow for providers reached over a plain JSON HTTP API."""

from abc import abstractmethod
from typing import Any

import httpx

from tldw.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from tldw.config import settings
from tldw.logging import get_logger

logger = get_logger(__name__)


class HTTPChatProvider(LLMProvider):
    """Chat provider that POSTs one JSON payload and reads one JSON answer.

    Subclasses describe the wire format: where to send it, which headers
    authenticate it, how the conversation is encoded and how the answer
    is decoded. Timeouts and error propagation are handled here.
    """

    vendor: str = "http"
    path: str = ""

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key
        self._model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.ai_request_timeout

        if not self.api_key:
            logger.warning("llm_api_key_missing", vendor=self.vendor)

    @property
    def name(self) -> str:
        return f"{self.vendor}:{self._model}"

    @property
    def model(self) -> str:
        return self._model

    @abstractmethod
    def build_headers(self) -> dict[str, str]: ...

    @abstractmethod
    def build_payload(
        self,
        messages: list[LLMMessage],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
    ) -> dict[str, Any]: ...

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> LLMResponse: ...

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        if not self.api_key:
            raise ValueError(f"{self.vendor.title()} API key not configured")

        payload = self.build_payload(messages, temperature, max_tokens, json_mode)
        logger.debug(
            f"{self.vendor}_request",
            model=self._model,
            message_count=len(messages),
            json_mode=json_mode,
        )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}{self.path}",
                headers=self.build_headers(),
                json=payload,
            )
            response.raise_for_status()
            data = response.json()

        result = self.parse_response(data)
        logger.info(
            f"{self.vendor}_response",
            model=result.model,
            tokens_used=result.total_tokens,
            finish_reason=result.finish_reason,
        )
        return result
