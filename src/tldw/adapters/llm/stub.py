"""Stub LLM provider for testing."""

import json

from tldw.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from tldw.logging import get_logger

logger = get_logger(__name__)


class StubLLMProvider(LLMProvider):
    """Stub provider that returns a canned summary for any transcript.

    Args:
        label: Provider label reported in ``name`` (e.g. "openai" when it
            stands in for a live provider).
        error: If set, ``complete`` raises this exception instead of
            answering. Used to exercise failure paths.
    """

    def __init__(self, label: str = "stub", error: Exception | None = None) -> None:
        self.label = label
        self.error = error
        self.calls: list[list[LLMMessage]] = []

    @property
    def name(self) -> str:
        return f"{self.label}:stub"

    @property
    def model(self) -> str:
        return "stub-model"

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Return a mock completion response."""
        self.calls.append(messages)
        logger.info(
            "stub_llm_complete",
            provider=self.label,
            message_count=len(messages),
            json_mode=json_mode,
        )

        if self.error is not None:
            raise self.error

        user_message = ""
        for msg in reversed(messages):
            if msg.role == "user":
                user_message = msg.content
                break

        excerpt = " ".join(user_message.split()[-40:])
        if json_mode:
            content = json.dumps(
                {
                    "summary": f"This video covers the following: {excerpt}",
                    "key_points": [
                        "The speaker introduces the topic",
                        "The main argument is developed with examples",
                        "The video closes with a short recap",
                    ],
                    "chapters": [
                        {"title": "Introduction", "timestamp": "00:00", "summary": "Opening"},
                        {"title": "Main points", "timestamp": "01:30", "summary": "Details"},
                    ],
                    "tags": ["stub", "summary"],
                    "sentiment": "neutral",
                }
            )
        else:
            content = f"This is a stub summary of: {excerpt}"

        prompt_tokens = len(user_message.split())
        completion_tokens = len(content.split())
        return LLMResponse(
            content=content,
            model=self.model,
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            finish_reason="stop",
        )
