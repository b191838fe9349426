"""Summary generation.

Builds the summarization prompt, calls the AI provider and parses its JSON
answer into a ``GeneratedSummary``.
"""

import asyncio
import json
from collections.abc import Callable
from typing import Any

from tldw.adapters.llm import LLMMessage, LLMProvider, get_llm_provider
from tldw.config import settings
from tldw.domain.enums import AIProvider, Sentiment, SummaryLength
from tldw.domain.errors import AIGenerationFailed
from tldw.domain.models import Chapter, GeneratedSummary, SummaryRequest, Transcript
from tldw.logging import get_logger

logger = get_logger(__name__)

# Rough blended USD price per 1K tokens, for the cost column only
COST_PER_1K_TOKENS = {
    AIProvider.OPENAI: 0.0004,
    AIProvider.ANTHROPIC: 0.006,
    AIProvider.GOOGLE: 0.0002,
}

# Keep prompts inside every provider's context window
MAX_TRANSCRIPT_CHARS = 60_000

SYSTEM_PROMPT = """You summarize YouTube videos from their transcripts.

Respond with a JSON object with these keys:
- "summary": the summary text
- "key_points": list of short strings
- "chapters": list of {"title", "timestamp", "summary"} with timestamps as MM:SS
- "tags": list of lowercase topic tags
- "sentiment": one of "positive", "neutral", "negative", "mixed"

Write only what the transcript supports."""


def estimate_cost(provider: AIProvider, tokens_used: int) -> float:
    return round(tokens_used / 1000 * COST_PER_1K_TOKENS.get(provider, 0.0), 6)


def build_messages(
    transcript: Transcript,
    length: SummaryLength,
    title: str | None = None,
    duration_seconds: int | None = None,
) -> list[LLMMessage]:
    """Prompt for a summary of ``transcript`` at the requested length."""
    header = [f"Write a {length.value} summary ({length.sentence_hint})."]
    if title:
        header.append(f"Video title: {title}")
    if duration_seconds:
        header.append(f"Video duration: {duration_seconds // 60} minutes")

    text = transcript.full_text
    if len(text) > MAX_TRANSCRIPT_CHARS:
        text = text[:MAX_TRANSCRIPT_CHARS]

    return [
        LLMMessage(role="system", content=SYSTEM_PROMPT),
        LLMMessage(role="user", content="\n".join(header) + f"\n\nTranscript:\n{text}"),
    ]


def _parse_sentiment(value: Any) -> Sentiment | None:
    if not value:
        return None
    try:
        return Sentiment(str(value).lower())
    except ValueError:
        return None


def _parse_chapters(raw: Any) -> list[Chapter]:
    chapters = []
    for item in raw or []:
        if not isinstance(item, dict) or not item.get("title"):
            continue
        chapters.append(
            Chapter(
                title=str(item["title"]),
                timestamp=str(item.get("timestamp", "")),
                summary=str(item.get("summary", "")),
            )
        )
    return chapters


def parse_summary(content: str, model: str) -> GeneratedSummary:
    """Parse the provider's JSON answer.

    Raises:
        AIGenerationFailed: If the answer is not JSON or has no summary text.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error("summary_json_parse_error", error=str(e), content=content[:500])
        raise AIGenerationFailed(f"AI provider returned invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise AIGenerationFailed("AI provider returned an unexpected payload")

    text = data.get("summary")
    if not isinstance(text, str) or not text.strip():
        raise AIGenerationFailed("AI provider response missing summary")

    return GeneratedSummary(
        text=text.strip(),
        model=model,
        key_points=[str(p) for p in data.get("key_points") or []],
        chapters=_parse_chapters(data.get("chapters")),
        tags=[str(t) for t in data.get("tags") or []],
        sentiment=_parse_sentiment(data.get("sentiment")),
    )


class SummaryGenerator:
    """Turns a transcript into a structured summary with the requested provider."""

    def __init__(
        self,
        provider_factory: Callable[[AIProvider, str | None], LLMProvider] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.provider_factory = (
            get_llm_provider if provider_factory is None else provider_factory
        )
        self.timeout = timeout or settings.ai_request_timeout

    async def generate(
        self,
        transcript: Transcript,
        request: SummaryRequest,
        title: str | None = None,
        duration_seconds: int | None = None,
    ) -> GeneratedSummary:
        """Generate a summary.

        Raises:
            AIGenerationFailed: On provider errors, timeouts, or unusable output.
        """
        provider = self.provider_factory(request.ai_provider, request.model)
        messages = build_messages(transcript, request.length, title, duration_seconds)

        logger.info(
            "summary_generation_started",
            provider=provider.name,
            length=str(request.length),
            transcript_words=transcript.word_count,
        )

        try:
            response = await asyncio.wait_for(
                provider.complete(messages, temperature=0.3, max_tokens=2048, json_mode=True),
                timeout=self.timeout,
            )
        except TimeoutError as e:
            raise AIGenerationFailed(
                f"{request.ai_provider} did not respond within {self.timeout:.0f}s"
            ) from e
        except Exception as e:
            logger.error("summary_provider_error", provider=provider.name, error=str(e))
            raise AIGenerationFailed(f"{request.ai_provider} request failed: {e}") from e

        summary = parse_summary(response.content, response.model or provider.model)
        summary.tokens_used = response.total_tokens
        summary.cost_usd = estimate_cost(request.ai_provider, response.total_tokens)

        logger.info(
            "summary_generation_completed",
            provider=provider.name,
            word_count=summary.word_count,
            tokens_used=summary.tokens_used,
        )
        return summary
