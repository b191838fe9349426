"""Transcript cache: serve stored transcripts, fetch and store the rest."""

from datetime import datetime

from sqlalchemy.orm import Session

from tldw.adapters.transcripts import TranscriptProvider, get_transcript_provider
from tldw.db.models import VideoModel
from tldw.domain.errors import TranscriptFetchFailed
from tldw.domain.models import TranscriptResult, VideoDescriptor
from tldw.logging import get_logger
from tldw.services.video_cache import VideoCache, transcript_from_model

logger = get_logger(__name__)


class TranscriptCache:
    """Get-or-fetch access to video transcripts."""

    def __init__(
        self,
        session: Session,
        provider: TranscriptProvider | None = None,
        video_cache: VideoCache | None = None,
    ) -> None:
        self.session = session
        self.provider = get_transcript_provider() if provider is None else provider
        self.videos = VideoCache(session) if video_cache is None else video_cache

    async def get_or_fetch(
        self,
        video: VideoModel | VideoDescriptor | str,
        now: datetime | None = None,
    ) -> TranscriptResult:
        """Return the cached transcript of a video, fetching it on a miss.

        Raises:
            TranscriptFetchFailed: If the transcript source has nothing usable.
        """
        if not isinstance(video, VideoModel):
            descriptor = video if isinstance(video, VideoDescriptor) else VideoDescriptor(video_id=video)
            video = self.videos.get_or_create(descriptor, now=now)

        stored = self.videos.get_transcript(video)
        if stored is not None:
            logger.info("transcript_cache_hit", video_id=video.video_id)
            return TranscriptResult(transcript=transcript_from_model(stored), cached=True)

        logger.info("transcript_cache_miss", video_id=video.video_id, provider=self.provider.name)
        try:
            transcript = await self.provider.fetch(video.video_id)
        except TranscriptFetchFailed:
            raise
        except Exception as e:
            raise TranscriptFetchFailed(f"Failed to fetch transcript: {e}") from e

        self.videos.set_transcript(video, transcript, now=now)
        return TranscriptResult(transcript=transcript, cached=False)
