"""Stub transcript provider for testing."""

from tldw.adapters.transcripts.base import TranscriptProvider
from tldw.domain.enums import TranscriptSource
from tldw.domain.errors import TranscriptFetchFailed
from tldw.domain.models import Transcript, TranscriptSegment
from tldw.logging import get_logger

logger = get_logger(__name__)

_SENTENCES = [
    "Welcome back to the channel.",
    "Today we are going to walk through the topic step by step.",
    "First we look at why it matters.",
    "Then we work through a concrete example.",
    "Finally we recap what we learned.",
]


class StubTranscriptProvider(TranscriptProvider):
    """Returns a synthetic five-segment transcript.

    Video ids listed in ``unavailable`` raise ``TranscriptFetchFailed``.
    """

    def __init__(self, unavailable: set[str] | None = None) -> None:
        self.unavailable = unavailable or set()
        self.fetched: list[str] = []

    @property
    def name(self) -> str:
        return "stub"

    async def fetch(self, video_id: str) -> Transcript:
        self.fetched.append(video_id)
        if video_id in self.unavailable:
            raise TranscriptFetchFailed(f"No transcript available for {video_id}")

        segments = [
            TranscriptSegment(text=text, start_time=i * 6.0, end_time=(i + 1) * 6.0)
            for i, text in enumerate(_SENTENCES)
        ]
        logger.info("stub_transcript_fetched", video_id=video_id)
        return Transcript(
            full_text=" ".join(s.text for s in segments),
            segments=segments,
            language="en",
            source=TranscriptSource.YOUTUBE_AUTO,
            title=f"Stub video {video_id}",
        )
