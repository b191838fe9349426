"""Tests for the transcript cache."""

import pytest

from tldw.adapters.transcripts.stub import StubTranscriptProvider
from tldw.domain.enums import TranscriptSource
from tldw.domain.errors import TranscriptFetchFailed
from tldw.domain.models import Transcript, VideoDescriptor
from tldw.services.transcripts import TranscriptCache
from tldw.services.video_cache import VideoCache


class ExplodingProvider(StubTranscriptProvider):
    async def fetch(self, video_id: str) -> Transcript:
        raise ConnectionError("transcript service unreachable")


@pytest.mark.asyncio
async def test_miss_fetches_and_stores(session, transcript_provider, now) -> None:
    cache = TranscriptCache(session, provider=transcript_provider)

    result = await cache.get_or_fetch("abc123", now=now)

    assert result.cached is False
    assert result.transcript.word_count > 0
    assert len(result.transcript.segments) == 5
    assert transcript_provider.fetched == ["abc123"]

    videos = VideoCache(session)
    video = videos.find("abc123")
    stored = videos.get_transcript(video)
    assert stored.full_text == result.transcript.full_text
    assert stored.source == "youtube_auto"
    assert video.title == "Stub video abc123"


@pytest.mark.asyncio
async def test_hit_is_served_without_fetching(session, transcript_provider, now) -> None:
    cache = TranscriptCache(session, provider=transcript_provider)
    first = await cache.get_or_fetch(VideoDescriptor(video_id="abc123"), now=now)

    second = await cache.get_or_fetch("abc123", now=now)

    assert second.cached is True
    assert second.transcript.full_text == first.transcript.full_text
    assert second.transcript.segments == first.transcript.segments
    assert second.transcript.source == TranscriptSource.YOUTUBE_AUTO
    assert transcript_provider.fetched == ["abc123"]


@pytest.mark.asyncio
async def test_unavailable_transcript_raises(session, now) -> None:
    cache = TranscriptCache(session, provider=StubTranscriptProvider(unavailable={"abc123"}))

    with pytest.raises(TranscriptFetchFailed):
        await cache.get_or_fetch("abc123", now=now)

    videos = VideoCache(session)
    assert videos.get_transcript(videos.find("abc123")) is None


@pytest.mark.asyncio
async def test_provider_errors_are_wrapped(session, now) -> None:
    cache = TranscriptCache(session, provider=ExplodingProvider())

    with pytest.raises(TranscriptFetchFailed, match="transcript service unreachable"):
        await cache.get_or_fetch("abc123", now=now)
