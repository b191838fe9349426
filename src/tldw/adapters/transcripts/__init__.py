"""Transcript provider adapters."""

from tldw.adapters.transcripts.base import TranscriptProvider
from tldw.adapters.transcripts.http import HTTPTranscriptProvider
from tldw.adapters.transcripts.stub import StubTranscriptProvider
from tldw.config import settings


def get_transcript_provider() -> TranscriptProvider:
    """Get the configured transcript provider."""
    if settings.transcript_provider == "http":
        return HTTPTranscriptProvider()
    return StubTranscriptProvider()


__all__ = [
    "HTTPTranscriptProvider",
    "StubTranscriptProvider",
    "TranscriptProvider",
    "get_transcript_provider",
]
