"""Tests for the shared video cache."""

from datetime import UTC, datetime, timedelta

from sqlalchemy import func, select

from tldw.db.models import VideoAccessModel, VideoSummaryModel, VideoTranscriptModel
from tldw.domain.enums import AIProvider, SummaryLength
from tldw.domain.models import (
    GeneratedSummary,
    SummaryRequest,
    Transcript,
    TranscriptSegment,
    VideoDescriptor,
)
from tldw.services.video_cache import VideoCache

MEDIUM = SummaryRequest(ai_provider=AIProvider.OPENAI, length=SummaryLength.MEDIUM)


def _generated(text: str = "A short summary of the video.") -> GeneratedSummary:
    return GeneratedSummary(text=text, model="gpt-4o-mini", key_points=["one", "two"], tokens_used=120)


def test_get_or_create_is_idempotent(session, now) -> None:
    cache = VideoCache(session)

    video = cache.get_or_create(VideoDescriptor(video_id="abc123"), now=now)
    again = cache.get_or_create(
        VideoDescriptor(video_id="abc123", title="Real title", channel_name="Channel"), now=now
    )

    assert again is video
    assert video.video_url == "https://www.youtube.com/watch?v=abc123"
    assert video.title == "Real title"
    assert video.channel_name == "Channel"
    assert video.cache_expires_at == datetime(2026, 9, 15, 12, 0, tzinfo=UTC)


def test_known_metadata_is_not_overwritten(session, now) -> None:
    cache = VideoCache(session)
    cache.get_or_create(VideoDescriptor(video_id="abc123", title="Original", duration_seconds=300), now=now)

    video = cache.get_or_create(
        VideoDescriptor(video_id="abc123", title="Changed", duration_seconds=999), now=now
    )

    assert video.title == "Original"
    assert video.duration_seconds == 300


def test_track_access_counts_views_and_unique_users(session, make_user, now) -> None:
    cache = VideoCache(session)
    alice = make_user()
    bob = make_user()
    video = cache.get_or_create(VideoDescriptor(video_id="abc123"), now=now)

    cache.track_access(video, alice, now=now)
    cache.track_access(video, alice, now=now + timedelta(minutes=5))
    cache.track_access(video, bob, now=now)

    assert video.total_views == 3
    assert video.unique_users == 2
    assert video.last_accessed == now

    access = session.execute(
        select(VideoAccessModel).where(VideoAccessModel.user_id == alice.id)
    ).scalar_one()
    assert access.access_count == 2
    assert access.user_email == alice.email


def test_cache_hit_rate(session, make_user, now) -> None:
    cache = VideoCache(session)
    user = make_user()
    video = cache.get_or_create(VideoDescriptor(video_id="abc123"), now=now)

    for _ in range(3):
        cache.track_access(video, user, now=now)
    cache.record_cache_hit(video)
    cache.record_cache_hit(video)

    assert video.cache_hit_rate == 66.67


def test_summary_variants_are_exact(session, make_user, now) -> None:
    cache = VideoCache(session)
    user = make_user()
    video = cache.get_or_create(VideoDescriptor(video_id="abc123"), now=now)

    summary, created = cache.add_summary(video, MEDIUM, _generated(), user, 840, now=now)

    assert created is True
    assert summary.summary_id
    assert summary.generated_by_email == user.email
    assert summary.word_count == 6
    assert cache.get_summary(video, MEDIUM) is summary
    assert cache.get_summary(video, SummaryRequest(length=SummaryLength.SHORT)) is None
    assert cache.get_summary(video, SummaryRequest(ai_provider=AIProvider.GOOGLE)) is None
    assert video.by_provider == {"openai": 1}
    assert video.by_length == {"medium": 1}


def test_duplicate_variant_returns_the_stored_summary(session, make_user, now) -> None:
    cache = VideoCache(session)
    first = make_user()
    second = make_user()
    video = cache.get_or_create(VideoDescriptor(video_id="abc123"), now=now)
    stored, _ = cache.add_summary(video, MEDIUM, _generated("First summary"), first, 100, now=now)

    summary, created = cache.add_summary(video, MEDIUM, _generated("Second summary"), second, 100, now=now)

    assert created is False
    assert summary.id == stored.id
    assert summary.text == "First summary"
    assert video.total_summaries_generated == 1
    assert session.execute(select(func.count(VideoSummaryModel.id))).scalar_one() == 1


def test_find_summary_by_video_id(session, make_user, now) -> None:
    cache = VideoCache(session)
    user = make_user()
    assert cache.find_summary("abc123", MEDIUM) is None

    video = cache.get_or_create(VideoDescriptor(video_id="abc123"), now=now)
    cache.add_summary(video, MEDIUM, _generated(), user, 100, now=now)

    found_video, found_summary = cache.find_summary("abc123", MEDIUM)
    assert found_video is video
    assert found_summary.ai_provider == "openai"
    assert video.total_views == 0


def test_set_transcript_replaces_previous(session, now) -> None:
    cache = VideoCache(session)
    video = cache.get_or_create(VideoDescriptor(video_id="abc123"), now=now)
    cache.set_transcript(video, Transcript(full_text="old words", title="From transcript"), now=now)

    stored = cache.set_transcript(
        video,
        Transcript(
            full_text="new transcript text here",
            segments=[TranscriptSegment(text="new transcript text here", start_time=0.0, end_time=4.5)],
        ),
        now=now,
    )

    assert stored.word_count == 4
    assert stored.segments == [{"text": "new transcript text here", "start_time": 0.0, "end_time": 4.5}]
    assert video.title == "From transcript"
    assert session.execute(select(func.count(VideoTranscriptModel.id))).scalar_one() == 1


def test_purge_expired_removes_children(session, make_user, now) -> None:
    cache = VideoCache(session)
    user = make_user()
    old = cache.get_or_create(VideoDescriptor(video_id="old123"), now=now - timedelta(days=200))
    fresh = cache.get_or_create(VideoDescriptor(video_id="new123"), now=now)
    cache.add_summary(old, MEDIUM, _generated(), user, 100, now=now)
    cache.set_transcript(old, Transcript(full_text="expired transcript"), now=now)
    session.flush()

    deleted = cache.purge_expired(now=now)

    assert deleted == 1
    assert cache.find("old123") is None
    assert cache.find("new123") is fresh
    assert session.execute(select(func.count(VideoSummaryModel.id))).scalar_one() == 0
    assert session.execute(select(func.count(VideoTranscriptModel.id))).scalar_one() == 0


def test_popular_and_trending(session, make_user, now) -> None:
    cache = VideoCache(session)
    user = make_user()
    stale = cache.get_or_create(VideoDescriptor(video_id="stale1"), now=now - timedelta(days=30))
    for _ in range(5):
        cache.track_access(stale, user, now=now - timedelta(days=30))
    recent = cache.get_or_create(VideoDescriptor(video_id="recent"), now=now)
    cache.track_access(recent, user, now=now)
    flagged = cache.get_or_create(VideoDescriptor(video_id="flagd1"), now=now)
    for _ in range(9):
        cache.track_access(flagged, user, now=now)
    flagged.is_flagged = True
    session.flush()

    assert [v.video_id for v in cache.popular(10)] == ["stale1", "recent"]
    assert [v.video_id for v in cache.trending(10, now=now)] == ["recent"]


def test_statistics(session, make_user, now) -> None:
    cache = VideoCache(session)
    user = make_user()
    assert cache.statistics()["overall_cache_hit_rate"] == 0.0

    video = cache.get_or_create(VideoDescriptor(video_id="abc123"), now=now)
    cache.track_access(video, user, now=now)
    cache.track_access(video, user, now=now)
    cache.record_cache_hit(video)
    cache.add_summary(video, MEDIUM, _generated(), user, 100, now=now)
    session.flush()

    stats = cache.statistics()
    assert stats == {
        "total_videos": 1,
        "total_views": 2,
        "total_cache_hits": 1,
        "total_summaries_generated": 1,
        "total_unique_viewers": 1,
        "overall_cache_hit_rate": 50.0,
    }
