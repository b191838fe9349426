"""Domain models - pure Python classes independent of database."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from tldw.domain.enums import AIProvider, Sentiment, SummaryLength, TranscriptSource


@dataclass
class VideoDescriptor:
    """What the extension knows about a video when it asks for a summary."""

    video_id: str
    title: str | None = None
    video_url: str | None = None
    channel_name: str | None = None
    channel_id: str | None = None
    duration_seconds: int | None = None
    thumbnail_url: str | None = None
    published_at: datetime | None = None

    @property
    def resolved_url(self) -> str:
        """Watch URL, derived from the id when the caller didn't send one."""
        return self.video_url or f"https://www.youtube.com/watch?v={self.video_id}"


@dataclass
class SummaryRequest:
    """Which cached summary variant is being asked for."""

    ai_provider: AIProvider = AIProvider.OPENAI
    length: SummaryLength = SummaryLength.MEDIUM
    model: str | None = None

    @property
    def cache_key(self) -> tuple[str, str]:
        return (str(self.ai_provider), str(self.length))


@dataclass
class TranscriptSegment:
    """A timed slice of a transcript."""

    text: str
    start_time: float
    end_time: float


@dataclass
class Transcript:
    """Full transcript of a video."""

    full_text: str
    segments: list[TranscriptSegment] = field(default_factory=list)
    language: str = "en"
    source: TranscriptSource = TranscriptSource.YOUTUBE_AUTO
    title: str | None = None
    channel_name: str | None = None

    @property
    def word_count(self) -> int:
        return len(self.full_text.split())


@dataclass
class Chapter:
    """A chapter marker inside a summary."""

    title: str
    timestamp: str
    summary: str = ""


@dataclass
class GeneratedSummary:
    """Parsed output of an AI provider."""

    text: str
    model: str
    key_points: list[str] = field(default_factory=list)
    chapters: list[Chapter] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    sentiment: Sentiment | None = None
    tokens_used: int = 0
    cost_usd: float = 0.0

    @property
    def word_count(self) -> int:
        return len(self.text.split())


@dataclass
class GeneratedBy:
    """Identity of the user whose request first produced a summary."""

    user_id: UUID | None
    email: str | None


@dataclass
class SummaryResult:
    """Outcome of a summary request, returned instead of raising."""

    success: bool
    cached: bool = False
    summary: dict[str, Any] | None = None
    generated_by: GeneratedBy | None = None
    video: dict[str, Any] | None = None
    credits_remaining: int | None = None
    is_premium: bool = False
    processing_time_ms: int = 0
    error: str | None = None
    error_code: str | None = None


@dataclass
class TranscriptResult:
    """Outcome of a transcript lookup."""

    transcript: Transcript
    cached: bool
