"""
Abstract base class for dictation transcription providers.

A provider turns one recorded audio chunk into text. Providers carry no
ordering guarantee of their own; the chunk queue serializes calls.
"""

from abc import ABC, abstractmethod

from surgical_report.core.models import AudioChunk


class BaseTranscriber(ABC):
    """Interface that every transcription provider must implement."""

    @abstractmethod
    async def transcribe(self, chunk: AudioChunk) -> str:
        """Transcribe one audio chunk.

        Args:
            chunk: Encoded audio (webm/opus, mp4, mpeg...) plus its MIME type.

        Returns:
            The transcribed text, possibly empty for silence.

        Raises:
            TranscriptionError: If the provider fails for this chunk.
        """

    async def aclose(self) -> None:
        """Release provider resources (HTTP clients, models)."""
