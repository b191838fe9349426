"""Google Gemini provider (google-genai SDK)."""

from google import genai
from google.genai import types

from tldw.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from tldw.config import settings
from tldw.logging import get_logger

logger = get_logger(__name__)

# Gemini names the assistant turn "model"
_ROLES = {"user": "user", "assistant": "model"}


def to_contents(messages: list[LLMMessage]) -> tuple[str, list[types.Content]]:
    """Split chat messages into a system instruction and Gemini contents."""
    system = "\n\n".join(m.content for m in messages if m.role == "system")
    contents = [
        types.Content(role=_ROLES[m.role], parts=[types.Part(text=m.content)])
        for m in messages
        if m.role in _ROLES
    ]
    return system, contents


class GeminiProvider(LLMProvider):
    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.api_key = api_key or settings.google_api_key
        self._model = model or settings.gemini_model
        self._client: genai.Client | None = None

        if not self.api_key:
            logger.warning("llm_api_key_missing", vendor="gemini")

    @property
    def name(self) -> str:
        return f"gemini:{self._model}"

    @property
    def model(self) -> str:
        return self._model

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise ValueError("Google API key not configured")
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(settings.ai_request_timeout * 1000)),
            )
        return self._client

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        system, contents = to_contents(messages)
        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
            system_instruction=system or None,
            response_mime_type="application/json" if json_mode else None,
        )

        logger.debug("gemini_request", model=self._model, message_count=len(contents), json_mode=json_mode)
        response = await self.client.aio.models.generate_content(
            model=self._model,
            contents=contents,
            config=config,
        )

        meta = response.usage_metadata
        usage = {
            "prompt_tokens": (meta and meta.prompt_token_count) or 0,
            "completion_tokens": (meta and meta.candidates_token_count) or 0,
            "total_tokens": (meta and meta.total_token_count) or 0,
        }
        finish_reason = None
        if response.candidates and response.candidates[0].finish_reason:
            finish_reason = str(response.candidates[0].finish_reason)

        logger.info("gemini_response", model=self._model, tokens_used=usage["total_tokens"])
        return LLMResponse(
            content=response.text or "",
            model=response.model_version or self._model,
            usage=usage,
            finish_reason=finish_reason,
        )
