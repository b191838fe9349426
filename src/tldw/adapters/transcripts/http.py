"""Transcript provider backed by an external HTTP transcript service."""

from typing import Any

import httpx

from tldw.adapters.transcripts.base import TranscriptProvider
from tldw.config import settings
from tldw.domain.enums import TranscriptSource
from tldw.domain.errors import TranscriptFetchFailed
from tldw.domain.models import Transcript, TranscriptSegment
from tldw.logging import get_logger

logger = get_logger(__name__)


class HTTPTranscriptProvider(TranscriptProvider):
    """Fetches transcripts from the transcript service.

    The service answers ``POST {url}`` with ``{"video_id": ...}`` and returns
    ``{success, plain_text, transcript_segments, language, source, title, author}``
    where each segment is ``{text, start, dur}``.
    """

    def __init__(self, url: str | None = None, timeout: float | None = None) -> None:
        self.url = url or settings.transcript_api_url
        self.timeout = timeout or settings.ai_request_timeout

    @property
    def name(self) -> str:
        return "http"

    async def fetch(self, video_id: str) -> Transcript:
        logger.debug("transcript_request", video_id=video_id, url=self.url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json={"video_id": video_id})
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise TranscriptFetchFailed(f"Transcript service timed out for {video_id}") from e
        except httpx.HTTPStatusError as e:
            raise TranscriptFetchFailed(
                f"Transcript service error: {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TranscriptFetchFailed(f"Transcript service unavailable: {e}") from e

        if not data.get("success"):
            raise TranscriptFetchFailed(data.get("error") or f"No transcript available for {video_id}")

        transcript = self._parse(data)
        if not transcript.full_text.strip():
            raise TranscriptFetchFailed(f"Empty transcript for {video_id}")

        logger.info(
            "transcript_fetched",
            video_id=video_id,
            word_count=transcript.word_count,
            segments=len(transcript.segments),
        )
        return transcript

    @staticmethod
    def _parse(data: dict[str, Any]) -> Transcript:
        segments = []
        for raw in data.get("transcript_segments") or []:
            start = float(raw.get("start", 0.0))
            segments.append(
                TranscriptSegment(
                    text=str(raw.get("text", "")),
                    start_time=start,
                    end_time=start + float(raw.get("dur", 0.0)),
                )
            )

        full_text = data.get("plain_text") or " ".join(s.text for s in segments)
        return Transcript(
            full_text=full_text,
            segments=segments,
            language=data.get("language") or "en",
            source=TranscriptSource.from_external(data.get("source")),
            title=data.get("title"),
            channel_name=data.get("author"),
        )
