"""Local transcription using faster-whisper.

Encoded chunks (webm/opus, mp4...) are handed to faster-whisper as file-like
objects; it decodes them through PyAV. The WhisperModel is loaded lazily and
cached at module level to avoid repeated initialization overhead.
"""

import asyncio
import io
import logging

from faster_whisper import WhisperModel

from surgical_report.core.config import get_settings
from surgical_report.core.exceptions import TranscriptionError
from surgical_report.core.models import AudioChunk
from surgical_report.services.transcription.base import BaseTranscriber

logger = logging.getLogger(__name__)

_model_cache: WhisperModel | None = None


class WhisperTranscriber(BaseTranscriber):
    """Speech-to-text provider using faster-whisper (CTranslate2).

    Args:
        model_size: Whisper model size (tiny, base, small, medium, large-v3).
        device: Computation device ("cpu" or "cuda").
        compute_type: CTranslate2 compute type ("int8", "float16", etc.).
        language: ISO language code; defaults to ``whisper_default_language``.
    """

    def __init__(
        self,
        model_size: str | None = None,
        device: str = "cpu",
        compute_type: str = "int8",
        language: str | None = None,
    ) -> None:
        settings = get_settings()
        self._model_size = model_size or settings.whisper_model
        self._device = device
        self._compute_type = compute_type
        self._language = language or settings.whisper_default_language or None

    def _get_model(self) -> WhisperModel:
        """Return the cached WhisperModel, loading it on first use."""
        global _model_cache  # noqa: PLW0603
        if _model_cache is None:
            logger.info(
                "Loading Whisper model: %s (device=%s, compute=%s)",
                self._model_size,
                self._device,
                self._compute_type,
            )
            _model_cache = WhisperModel(
                self._model_size,
                device=self._device,
                compute_type=self._compute_type,
            )
        return _model_cache

    def _run_transcription(self, data: bytes) -> str:
        """Run synchronous transcription (CPU-bound).

        Must be called via asyncio.to_thread(). The segment generator is
        consumed in this thread to avoid CTranslate2 cross-thread issues.
        """
        model = self._get_model()
        segments, _info = model.transcribe(
            io.BytesIO(data),
            language=self._language,
            beam_size=1,
            vad_filter=True,
        )
        return " ".join(seg.text.strip() for seg in segments if seg.text.strip())

    async def transcribe(self, chunk: AudioChunk) -> str:
        try:
            return await asyncio.to_thread(self._run_transcription, chunk.data)
        except Exception as exc:
            raise TranscriptionError(detail=f"Whisper transcription failed: {exc}") from exc
