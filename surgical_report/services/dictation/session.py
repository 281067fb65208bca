"""Per-report dictation: chunked recording, capture, live recognition.

Three dictation sources feed the same injector:

- Recorded chunks (``add_chunk`` while recording) go through
  ``AudioChunkQueue`` and are transcribed one by one as they arrive.
- Captured audio (``start_capture`` / ``stop_and_transcribe``) is buffered
  until the user stops, then transcribed once as a single recording.
- Live recognition events go through ``SpeechRecognitionAdapter``; only
  finalized segments are injected.

Text is inserted with a trailing space so consecutive phrases stay apart.
Once ``close()`` has run, nothing is injected anymore, even if an in-flight
transcription completes later.
"""

import logging
from collections.abc import Awaitable, Callable

from surgical_report.core.exceptions import RecognitionError, TranscriptionError
from surgical_report.core.models import AudioChunk, TranscriptSegment
from surgical_report.services.dictation.chunk_queue import AudioChunkQueue
from surgical_report.services.dictation.notifications import (
    NO_ACTIVE_FIELD_NOTICE,
    ErrorDeduplicator,
    NotifyCallback,
    recognition_notice,
    transcription_notice,
)
from surgical_report.services.dictation.recognition import (
    RecognitionEngine,
    SpeechRecognitionAdapter,
)
from surgical_report.services.form.fields import ActiveFieldInjector
from surgical_report.services.transcription.base import BaseTranscriber

logger = logging.getLogger(__name__)

StatusCallback = Callable[[dict], Awaitable[None]]


class DictationSession:
    """Wires dictation sources to the focused field of one report.

    Args:
        injector: Inserts text into the focused field.
        transcriber: Provider used for recorded chunks and captures.
        notify: Async callback for user-visible notices.
        auto_restart: Restart live recognition when it ends by itself.
        on_status: Async callback receiving capture state changes.
    """

    def __init__(
        self,
        injector: ActiveFieldInjector,
        transcriber: BaseTranscriber,
        notify: NotifyCallback,
        auto_restart: bool = True,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._injector = injector
        self._transcriber = transcriber
        self._notify = notify
        self._auto_restart = auto_restart
        self._on_status = on_status
        self._queue = AudioChunkQueue(
            transcriber,
            on_text=self._inject,
            on_error=self._on_transcription_error,
        )
        self._recognition: SpeechRecognitionAdapter | None = None
        self.recording = False
        self._closed = False

        self.capturing = False
        self.transcribing = False
        self._captured: list[bytes] = []
        self._capture_mime_type = "audio/webm"
        self._capture_errors = ErrorDeduplicator()

    @property
    def queue(self) -> AudioChunkQueue:
        return self._queue

    @property
    def recognition(self) -> SpeechRecognitionAdapter | None:
        return self._recognition

    @property
    def closed(self) -> bool:
        return self._closed

    def attach_engine(self, engine: RecognitionEngine) -> SpeechRecognitionAdapter:
        """Bind a live recognizer (one per connected client)."""
        self._recognition = SpeechRecognitionAdapter(
            engine,
            on_final=self._on_segment,
            on_error=self._on_recognition_error,
            auto_restart=self._auto_restart,
        )
        return self._recognition

    async def detach_engine(self) -> None:
        if self._recognition is not None:
            await self._recognition.stop()
            self._recognition = None

    # -- chunked recording --

    def start_recording(self) -> None:
        if self._closed:
            logger.debug("Ignoring start_recording on a closed dictation session")
            return
        self._queue.reset()
        self.recording = True

    def add_chunk(self, data: bytes, mime_type: str = "audio/webm") -> bool:
        """Route one recorder timeslice.

        While capturing, the chunk is buffered; while recording, it is queued
        for transcription. Otherwise it is ignored.
        """
        if self._closed:
            return False
        if self.capturing:
            if not data:
                return False
            self._captured.append(data)
            self._capture_mime_type = mime_type
            return True
        if not self.recording:
            return False
        return self._queue.enqueue(AudioChunk(data=data, mime_type=mime_type))

    def stop_recording(self) -> None:
        """User stopped recording: pending chunks are dropped."""
        self.recording = False
        self._queue.cancel()

    # -- record, then transcribe --

    async def start_capture(self) -> None:
        """Start buffering audio to be transcribed in one go on stop."""
        if self._closed or self.capturing or self.transcribing:
            return
        self._captured = []
        self._capture_errors.clear()
        self.capturing = True
        await self._publish_status()

    async def stop_and_transcribe(self) -> str | None:
        """Stop capturing and transcribe everything buffered as one recording.

        Returns:
            The trimmed transcript (possibly empty), or None when nothing was
            being captured or the transcription failed.
        """
        if not self.capturing:
            return None
        self.capturing = False
        data = b"".join(self._captured)
        self._captured = []
        if not data:
            await self._publish_status()
            return ""

        self.transcribing = True
        await self._publish_status()
        try:
            text = await self._transcriber.transcribe(
                AudioChunk(data=data, mime_type=self._capture_mime_type)
            )
        except Exception as exc:
            error = (
                exc
                if isinstance(exc, TranscriptionError)
                else TranscriptionError(detail=f"Error transcribiendo audio: {exc}")
            )
            logger.warning("Capture transcription failed: %s", error.detail)
            if not self._closed and self._capture_errors.report(error.detail):
                await self._notify(transcription_notice(error.detail))
            return None
        finally:
            self.transcribing = False
            await self._publish_status()

        text = (text or "").strip()
        if text:
            await self._inject(text)
        return text

    def discard_capture(self) -> None:
        self.capturing = False
        self._captured = []

    async def _publish_status(self) -> None:
        if self._on_status is None or self._closed:
            return
        await self._on_status({"capturing": self.capturing, "transcribing": self.transcribing})

    # -- live recognition --

    async def start_listening(self) -> None:
        if self._recognition is None or self._closed:
            await self._notify(recognition_notice("unsupported"))
            return
        await self._recognition.start()

    async def stop_listening(self) -> None:
        if self._recognition is not None:
            await self._recognition.stop()

    # -- teardown --

    async def close(self) -> None:
        """Stop every source and make sure nothing is injected afterwards."""
        if self._closed:
            return
        self._closed = True
        self.stop_recording()
        self.discard_capture()
        await self.detach_engine()
        await self._transcriber.aclose()
        logger.info("Dictation session closed")

    # -- callbacks --

    async def _inject(self, text: str) -> None:
        if self._closed:
            logger.debug("Dropping transcript after dictation session closed")
            return
        if not self._injector.insert(text + " "):
            await self._notify(NO_ACTIVE_FIELD_NOTICE)

    async def _on_segment(self, segment: TranscriptSegment) -> None:
        await self._inject(segment.text)

    async def _on_transcription_error(self, error: TranscriptionError) -> None:
        if not self._closed:
            await self._notify(transcription_notice(error.detail))

    async def _on_recognition_error(self, error: RecognitionError) -> None:
        await self._notify(recognition_notice(error.reason))
