"""Transcript endpoints."""

from typing import Any

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from tldw.api.deps import ClockDep, CurrentUserDep, SessionDep, TranscriptProviderDep
from tldw.api.routes.summaries import VIDEO_ID_PATTERN
from tldw.domain.errors import TranscriptFetchFailed
from tldw.domain.models import VideoDescriptor
from tldw.logging import get_logger
from tldw.services.transcripts import TranscriptCache

router = APIRouter(prefix="/transcripts", tags=["Transcripts"])
logger = get_logger(__name__)


class FetchTranscriptRequest(BaseModel):
    video_id: str = Field(..., pattern=VIDEO_ID_PATTERN)
    title: str | None = None
    channel_name: str | None = None
    duration_seconds: int | None = Field(default=None, ge=0)


class TranscriptResponse(BaseModel):
    video_id: str
    cached: bool
    full_text: str
    segments: list[dict[str, Any]]
    language: str
    source: str
    word_count: int


@router.post(
    "/fetch",
    response_model=TranscriptResponse,
    summary="Get a video transcript",
    description="Serve the cached transcript or fetch it from the transcript service.",
)
async def fetch_transcript(
    request: FetchTranscriptRequest,
    user: CurrentUserDep,
    session: SessionDep,
    provider: TranscriptProviderDep,
    clock: ClockDep,
) -> TranscriptResponse:
    descriptor = VideoDescriptor(
        video_id=request.video_id,
        title=request.title,
        channel_name=request.channel_name,
        duration_seconds=request.duration_seconds,
    )
    try:
        result = await TranscriptCache(session, provider=provider).get_or_fetch(descriptor, now=clock())
    except TranscriptFetchFailed as e:
        session.rollback()
        logger.warning("transcript_unavailable", video_id=request.video_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "Transcript not available for this video", "code": "TRANSCRIPT_UNAVAILABLE"},
        ) from e
    session.commit()

    transcript = result.transcript
    return TranscriptResponse(
        video_id=request.video_id,
        cached=result.cached,
        full_text=transcript.full_text,
        segments=[
            {"text": s.text, "start_time": s.start_time, "end_time": s.end_time}
            for s in transcript.segments
        ],
        language=transcript.language,
        source=str(transcript.source),
        word_count=transcript.word_count,
    )
