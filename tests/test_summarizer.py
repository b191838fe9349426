"""Tests for summary prompt building and response parsing."""

import asyncio
import json

import pytest

from tldw.adapters.llm import LLMMessage, LLMResponse, StubLLMProvider
from tldw.domain.enums import AIProvider, Sentiment, SummaryLength
from tldw.domain.errors import AIGenerationFailed
from tldw.domain.models import SummaryRequest, Transcript
from tldw.services.summarizer import (
    MAX_TRANSCRIPT_CHARS,
    SummaryGenerator,
    build_messages,
    estimate_cost,
    parse_summary,
)


class SlowProvider(StubLLMProvider):
    async def complete(self, messages: list[LLMMessage], **kwargs) -> LLMResponse:
        await asyncio.sleep(1)
        return await super().complete(messages, **kwargs)


class TestBuildMessages:
    def test_length_hint_and_metadata(self) -> None:
        transcript = Transcript(full_text="We talk about caching today.")

        system, user = build_messages(transcript, SummaryLength.SHORT, title="Caching 101", duration_seconds=754)

        assert system.role == "system"
        assert '"key_points"' in system.content
        assert user.role == "user"
        assert "Write a short summary (2-3 sentences)." in user.content
        assert "Video title: Caching 101" in user.content
        assert "Video duration: 12 minutes" in user.content
        assert user.content.endswith("We talk about caching today.")

    def test_long_transcripts_are_truncated(self) -> None:
        transcript = Transcript(full_text="word " * MAX_TRANSCRIPT_CHARS)

        _, user = build_messages(transcript, SummaryLength.LONG)

        assert "10-15 sentences" in user.content
        assert "Video title" not in user.content
        assert len(user.content) < MAX_TRANSCRIPT_CHARS + 200


class TestParseSummary:
    def test_full_payload(self) -> None:
        content = json.dumps(
            {
                "summary": "  The video explains caching.  ",
                "key_points": ["caches are fast", 42],
                "chapters": [
                    {"title": "Intro", "timestamp": "00:00", "summary": "hello"},
                    {"timestamp": "01:00"},
                    "not a chapter",
                ],
                "tags": ["caching"],
                "sentiment": "Positive",
            }
        )

        summary = parse_summary(content, "gpt-4o-mini")

        assert summary.text == "The video explains caching."
        assert summary.model == "gpt-4o-mini"
        assert summary.key_points == ["caches are fast", "42"]
        assert [c.title for c in summary.chapters] == ["Intro"]
        assert summary.tags == ["caching"]
        assert summary.sentiment == Sentiment.POSITIVE
        assert summary.word_count == 4

    def test_unknown_sentiment_is_dropped(self) -> None:
        summary = parse_summary(json.dumps({"summary": "Fine.", "sentiment": "ecstatic"}), "m")

        assert summary.sentiment is None
        assert summary.key_points == []
        assert summary.chapters == []

    @pytest.mark.parametrize(
        "content",
        ["not json", json.dumps(["summary"]), json.dumps({"summary": "   "}), json.dumps({"key_points": []})],
    )
    def test_unusable_answers_raise(self, content) -> None:
        with pytest.raises(AIGenerationFailed):
            parse_summary(content, "m")


def test_estimate_cost() -> None:
    assert estimate_cost(AIProvider.OPENAI, 10_000) == 0.004
    assert estimate_cost(AIProvider.GOOGLE, 0) == 0.0


class TestSummaryGenerator:
    @pytest.mark.asyncio
    async def test_generate_with_stub(self, generator, llm_provider) -> None:
        transcript = Transcript(full_text="Today we walk through how a cache serves repeated requests.")

        summary = await generator.generate(
            transcript, SummaryRequest(length=SummaryLength.MEDIUM), title="Caches"
        )

        assert summary.text.startswith("This video covers the following:")
        assert summary.model == "stub-model"
        assert len(summary.key_points) == 3
        assert summary.sentiment == Sentiment.NEUTRAL
        assert summary.tokens_used > 0
        assert summary.cost_usd == estimate_cost(AIProvider.OPENAI, summary.tokens_used)
        assert len(llm_provider.calls) == 1

    @pytest.mark.asyncio
    async def test_provider_errors_become_generation_failures(self, failing_generator) -> None:
        with pytest.raises(AIGenerationFailed, match="provider unavailable"):
            await failing_generator.generate(Transcript(full_text="text"), SummaryRequest())

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        generator = SummaryGenerator(provider_factory=lambda provider, model: SlowProvider(), timeout=0.01)

        with pytest.raises(AIGenerationFailed, match="did not respond"):
            await generator.generate(Transcript(full_text="text"), SummaryRequest())

    def test_factory_receives_requested_provider(self) -> None:
        seen = []

        def factory(provider, model):
            seen.append((provider, model))
            return StubLLMProvider(label=str(provider))

        generator = SummaryGenerator(provider_factory=factory)
        asyncio.run(
            generator.generate(
                Transcript(full_text="text"),
                SummaryRequest(ai_provider=AIProvider.ANTHROPIC, model="claude-3-5-haiku-latest"),
            )
        )

        assert seen == [(AIProvider.ANTHROPIC, "claude-3-5-haiku-latest")]
