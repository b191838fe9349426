"""Base interface for transcript providers."""

from abc import ABC, abstractmethod

from tldw.domain.models import Transcript


class TranscriptProvider(ABC):
    """Abstract base class for transcript sources.

    Implementations:
    - HTTPTranscriptProvider: Calls an external transcript service
    - StubTranscriptProvider: Returns a synthetic transcript for testing
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def fetch(self, video_id: str) -> Transcript:
        """Fetch the transcript of a YouTube video.

        Raises:
            TranscriptFetchFailed: If the video has no usable transcript or
                the source is unreachable.
        """
        ...
