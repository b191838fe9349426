"""Shared video cache.

One ``VideoModel`` per YouTube video holds the transcript and every summary
variant generated for it, plus access statistics. All users read from the
same cache; at most one summary exists per (video, provider, length).
"""

from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tldw.config import settings
from tldw.db.models import (
    UserModel,
    VideoAccessModel,
    VideoModel,
    VideoSummaryModel,
    VideoTranscriptModel,
)
from tldw.domain.enums import TranscriptSource
from tldw.domain.models import (
    GeneratedSummary,
    SummaryRequest,
    Transcript,
    TranscriptSegment,
    VideoDescriptor,
)
from tldw.logging import get_logger
from tldw.utils.time import ensure_utc, months_from, utcnow

logger = get_logger(__name__)

TRENDING_WINDOW = timedelta(days=7)


def _hit_rate(cache_hits: int, total_views: int) -> float:
    if not total_views:
        return 0.0
    return round(cache_hits / total_views * 100, 2)


def video_to_dict(video: VideoModel) -> dict[str, Any]:
    """Public view of a cached video, as returned alongside summaries."""
    return {
        "video_id": video.video_id,
        "title": video.title,
        "video_url": video.video_url,
        "channel_name": video.channel_name,
        "duration_seconds": video.duration_seconds,
        "thumbnail_url": video.thumbnail_url,
        "cache_stats": {
            "total_views": video.total_views,
            "unique_users": video.unique_users,
            "cache_hits": video.cache_hits,
            "cache_hit_rate": video.cache_hit_rate,
        },
    }


def transcript_from_model(model: VideoTranscriptModel) -> Transcript:
    return Transcript(
        full_text=model.full_text,
        segments=[TranscriptSegment(**segment) for segment in model.segments or []],
        language=model.language,
        source=TranscriptSource.from_external(model.source),
    )


class VideoCache:
    """Reads and writes the shared video cache through a session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # ------------------------------------------------------------------
    # Videos
    # ------------------------------------------------------------------

    def find(self, video_id: str) -> VideoModel | None:
        return self.session.execute(
            select(VideoModel).where(VideoModel.video_id == video_id)
        ).scalar_one_or_none()

    def get_or_create(self, descriptor: VideoDescriptor, now: datetime | None = None) -> VideoModel:
        """Resolve the cached video for ``descriptor``, creating it on first sight.

        Missing metadata on an existing record is filled in from the
        descriptor; known values are never overwritten.
        """
        now = ensure_utc(now or utcnow())
        video = self.find(descriptor.video_id)
        if video is not None:
            self._fill_metadata(video, descriptor)
            return video

        video = VideoModel(
            video_id=descriptor.video_id,
            video_url=descriptor.resolved_url,
            title=descriptor.title or descriptor.video_id,
            channel_name=descriptor.channel_name,
            channel_id=descriptor.channel_id,
            duration_seconds=descriptor.duration_seconds,
            thumbnail_url=descriptor.thumbnail_url,
            published_at=descriptor.published_at,
            total_views=0,
            unique_users=0,
            total_summaries_generated=0,
            cache_hits=0,
            cache_hit_rate=0.0,
            by_provider={},
            by_length={},
            first_accessed=now,
            last_accessed=now,
            cache_expires_at=months_from(now, settings.cache_ttl_months),
        )
        try:
            with self.session.begin_nested():
                self.session.add(video)
        except IntegrityError:
            # Created concurrently by another request
            existing = self.find(descriptor.video_id)
            if existing is None:
                raise
            return existing

        logger.info("video_cached", video_id=descriptor.video_id)
        return video

    @staticmethod
    def _fill_metadata(video: VideoModel, descriptor: VideoDescriptor) -> None:
        if descriptor.title and video.title == video.video_id:
            video.title = descriptor.title
        for attr in ("channel_name", "channel_id", "duration_seconds", "thumbnail_url", "published_at"):
            value = getattr(descriptor, attr)
            if value is not None and getattr(video, attr) is None:
                setattr(video, attr, value)

    def track_access(self, video: VideoModel, user: UserModel, now: datetime | None = None) -> None:
        """Count a view of ``video`` by ``user``."""
        now = ensure_utc(now or utcnow())
        access = self.session.execute(
            select(VideoAccessModel).where(
                VideoAccessModel.video_pk == video.id,
                VideoAccessModel.user_id == user.id,
            )
        ).scalar_one_or_none()

        if access is None:
            self.session.add(
                VideoAccessModel(
                    video_pk=video.id,
                    user_id=user.id,
                    user_email=user.email,
                    access_count=1,
                    first_access=now,
                    last_access=now,
                )
            )
            self.session.flush()
            video.unique_users += 1
        else:
            access.access_count += 1
            access.last_access = now

        video.total_views += 1
        video.last_accessed = now
        video.cache_hit_rate = _hit_rate(video.cache_hits, video.total_views)

    def record_cache_hit(self, video: VideoModel) -> None:
        video.cache_hits += 1
        video.cache_hit_rate = _hit_rate(video.cache_hits, video.total_views)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def get_summary(
        self, video: VideoModel, request: SummaryRequest
    ) -> VideoSummaryModel | None:
        """Exact lookup of the (provider, length) variant."""
        return self.session.execute(
            select(VideoSummaryModel).where(
                VideoSummaryModel.video_pk == video.id,
                VideoSummaryModel.ai_provider == str(request.ai_provider),
                VideoSummaryModel.length == str(request.length),
            )
        ).scalar_one_or_none()

    def find_summary(
        self, video_id: str, request: SummaryRequest
    ) -> tuple[VideoModel, VideoSummaryModel] | None:
        """Read-only lookup by YouTube id; touches no statistics."""
        video = self.find(video_id)
        if video is None:
            return None
        summary = self.get_summary(video, request)
        if summary is None:
            return None
        return video, summary

    def add_summary(
        self,
        video: VideoModel,
        request: SummaryRequest,
        generated: GeneratedSummary,
        user: UserModel,
        processing_time_ms: int,
        now: datetime | None = None,
    ) -> tuple[VideoSummaryModel, bool]:
        """Store a generated summary variant.

        Returns:
            The stored summary and whether it was created by this call. When
            another writer stored the same variant first, their summary is
            returned with ``False``.
        """
        now = ensure_utc(now or utcnow())
        summary = VideoSummaryModel(
            video_pk=video.id,
            ai_provider=str(request.ai_provider),
            model=generated.model,
            length=str(request.length),
            language="en",
            text=generated.text,
            key_points=list(generated.key_points),
            chapters=[asdict(chapter) for chapter in generated.chapters],
            tags=list(generated.tags),
            sentiment=str(generated.sentiment) if generated.sentiment else None,
            word_count=generated.word_count,
            processing_time_ms=processing_time_ms,
            tokens_used=generated.tokens_used,
            cost_usd=generated.cost_usd,
            generated_by_user_id=user.id,
            generated_by_email=user.email,
            generated_at=now,
        )

        try:
            with self.session.begin_nested():
                self.session.add(summary)
        except IntegrityError:
            existing = self.get_summary(video, request)
            if existing is None:
                raise
            logger.info(
                "summary_insert_lost_race",
                video_id=video.video_id,
                ai_provider=str(request.ai_provider),
                length=str(request.length),
            )
            return existing, False

        provider, length = request.cache_key
        video.total_summaries_generated += 1
        # Reassign so the JSON columns are flagged dirty
        by_provider = dict(video.by_provider or {})
        by_provider[provider] = by_provider.get(provider, 0) + 1
        video.by_provider = by_provider
        by_length = dict(video.by_length or {})
        by_length[length] = by_length.get(length, 0) + 1
        video.by_length = by_length

        logger.info(
            "summary_cached",
            video_id=video.video_id,
            ai_provider=provider,
            length=length,
            summary_id=summary.summary_id,
        )
        return summary, True

    # ------------------------------------------------------------------
    # Transcripts
    # ------------------------------------------------------------------

    def get_transcript(self, video: VideoModel) -> VideoTranscriptModel | None:
        return self.session.execute(
            select(VideoTranscriptModel).where(VideoTranscriptModel.video_pk == video.id)
        ).scalar_one_or_none()

    def set_transcript(
        self, video: VideoModel, transcript: Transcript, now: datetime | None = None
    ) -> VideoTranscriptModel:
        """Attach ``transcript`` to ``video``, replacing any previous one."""
        now = ensure_utc(now or utcnow())
        segments = [asdict(segment) for segment in transcript.segments]

        stored = self.get_transcript(video)
        if stored is None:
            stored = VideoTranscriptModel(video_pk=video.id)
            self.session.add(stored)

        stored.full_text = transcript.full_text
        stored.segments = segments
        stored.language = transcript.language
        stored.word_count = transcript.word_count
        stored.source = str(transcript.source)
        stored.generated_at = now
        self.session.flush()

        if transcript.title and video.title == video.video_id:
            video.title = transcript.title
        if transcript.channel_name and video.channel_name is None:
            video.channel_name = transcript.channel_name

        logger.info("transcript_cached", video_id=video.video_id, word_count=stored.word_count)
        return stored

    # ------------------------------------------------------------------
    # Statistics and maintenance
    # ------------------------------------------------------------------

    def statistics(self) -> dict[str, Any]:
        row = self.session.execute(
            select(
                func.count(VideoModel.id),
                func.coalesce(func.sum(VideoModel.total_views), 0),
                func.coalesce(func.sum(VideoModel.cache_hits), 0),
                func.coalesce(func.sum(VideoModel.total_summaries_generated), 0),
                func.coalesce(func.sum(VideoModel.unique_users), 0),
            )
        ).one()
        total_videos, total_views, cache_hits, summaries, unique_users = (int(v) for v in row)
        return {
            "total_videos": total_videos,
            "total_views": total_views,
            "total_cache_hits": cache_hits,
            "total_summaries_generated": summaries,
            "total_unique_viewers": unique_users,
            "overall_cache_hit_rate": _hit_rate(cache_hits, total_views),
        }

    def popular(self, limit: int = 10) -> list[VideoModel]:
        return list(
            self.session.execute(
                select(VideoModel)
                .where(VideoModel.is_flagged.is_(False))
                .order_by(VideoModel.total_views.desc(), VideoModel.last_accessed.desc())
                .limit(limit)
            ).scalars()
        )

    def trending(self, limit: int = 10, now: datetime | None = None) -> list[VideoModel]:
        since = ensure_utc(now or utcnow()) - TRENDING_WINDOW
        return list(
            self.session.execute(
                select(VideoModel)
                .where(VideoModel.is_flagged.is_(False), VideoModel.last_accessed >= since)
                .order_by(VideoModel.total_views.desc(), VideoModel.last_accessed.desc())
                .limit(limit)
            ).scalars()
        )

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete videos whose cache entry has expired, with all their children."""
        now = ensure_utc(now or utcnow())
        expired = list(
            self.session.execute(
                select(VideoModel).where(VideoModel.cache_expires_at < now)
            ).scalars()
        )
        for video in expired:
            self.session.delete(video)
        self.session.flush()

        if expired:
            logger.info("expired_videos_purged", count=len(expired))
        return len(expired)
