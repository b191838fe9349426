"""Tests for domain models."""

from datetime import UTC, datetime

import pytest

from tldw.domain.enums import AIProvider, SummaryLength, TranscriptSource
from tldw.domain.errors import InsufficientCredits, InvalidUser, TokenExpired, Unauthenticated
from tldw.domain.models import GeneratedSummary, SummaryRequest, Transcript, VideoDescriptor
from tldw.utils.time import first_of_next_month, months_ago, months_from, next_midnight


def test_video_descriptor_url() -> None:
    """The watch URL is derived from the id unless one was sent."""
    assert VideoDescriptor(video_id="abc123").resolved_url == "https://www.youtube.com/watch?v=abc123"
    assert VideoDescriptor(video_id="abc123", video_url="https://youtu.be/abc123").resolved_url == (
        "https://youtu.be/abc123"
    )


def test_summary_request_defaults() -> None:
    """Test default summary request and its cache key."""
    request = SummaryRequest()

    assert request.ai_provider == AIProvider.OPENAI
    assert request.length == SummaryLength.MEDIUM
    assert request.model is None
    assert request.cache_key == ("openai", "medium")


def test_word_counts() -> None:
    assert Transcript(full_text="one two  three\nfour").word_count == 4
    assert GeneratedSummary(text="", model="m").word_count == 0


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("youtube_manual", TranscriptSource.YOUTUBE_MANUAL),
        ("Manual captions", TranscriptSource.YOUTUBE_MANUAL),
        ("auto-generated", TranscriptSource.YOUTUBE_GENERATED),
        ("something else", TranscriptSource.YOUTUBE_AUTO),
        (None, TranscriptSource.YOUTUBE_AUTO),
    ],
)
def test_transcript_source_mapping(label, expected) -> None:
    assert TranscriptSource.from_external(label) == expected


def test_length_hints() -> None:
    assert [length.sentence_hint for length in SummaryLength] == [
        "2-3 sentences",
        "5-7 sentences",
        "10-15 sentences",
    ]


def test_error_codes() -> None:
    """Authentication errors carry a stable code and default message."""
    assert Unauthenticated().code == "NO_TOKEN"
    assert TokenExpired().code == "TOKEN_EXPIRED"
    assert str(InvalidUser()) == "User not found or inactive"

    error = InsufficientCredits(balance=0)
    assert error.balance == 0
    assert error.required == 1


class TestTimeHelpers:
    def test_first_of_next_month(self) -> None:
        assert first_of_next_month(datetime(2026, 3, 15, 12, 0, tzinfo=UTC)) == datetime(2026, 4, 1, tzinfo=UTC)
        assert first_of_next_month(datetime(2026, 12, 31, 23, 59, tzinfo=UTC)) == datetime(2027, 1, 1, tzinfo=UTC)

    def test_next_midnight(self) -> None:
        assert next_midnight(datetime(2026, 2, 28, 8, 0, tzinfo=UTC)) == datetime(2026, 3, 1, tzinfo=UTC)

    def test_month_arithmetic_clamps_day(self) -> None:
        assert months_from(datetime(2026, 8, 31, tzinfo=UTC), 6) == datetime(2027, 2, 28, tzinfo=UTC)
        assert months_ago(datetime(2026, 5, 31, tzinfo=UTC), 3) == datetime(2026, 2, 28, tzinfo=UTC)
