"""Sequential transcription of recorded audio chunks.

The recorder produces one chunk per timeslice. Each chunk is transcribed by a
network call with unpredictable latency, so chunks are drained strictly one
at a time, in arrival order, by a single background task. Text therefore
lands in the form in the order it was spoken.

Usage::

    queue = AudioChunkQueue(transcriber, on_text=inject, on_error=report)
    queue.enqueue(AudioChunk(data=blob, mime_type="audio/webm"))
    ...
    queue.cancel()      # user stopped recording
    await queue.join()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from surgical_report.core.exceptions import TranscriptionError
from surgical_report.core.models import AudioChunk
from surgical_report.services.transcription.base import BaseTranscriber

logger = logging.getLogger(__name__)

TextCallback = Callable[[str], Awaitable[None]]
ErrorCallback = Callable[[TranscriptionError], Awaitable[None]]


class AudioChunkQueue:
    """FIFO of audio chunks with a single lazily-started drain task.

    Chunks enqueued while a drain pass is running are picked up by that same
    pass. Each ``cancel()`` starts a new generation: pending chunks are
    dropped, and a chunk already being transcribed is allowed to finish but
    its text is discarded because its generation is stale.

    Args:
        transcriber: Provider that turns one chunk into text.
        on_text: Async callback receiving each non-empty transcript.
        on_error: Async callback receiving per-chunk failures.
    """

    def __init__(
        self,
        transcriber: BaseTranscriber,
        on_text: TextCallback,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._transcriber = transcriber
        self._on_text = on_text
        self._on_error = on_error
        self._queue: asyncio.Queue[tuple[int, AudioChunk]] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._processing = False
        self._generation = 0
        self._cancelled = False
        self._sequence = 0

    @property
    def pending(self) -> int:
        """Number of chunks waiting for transcription."""
        return self._queue.qsize()

    @property
    def processing(self) -> bool:
        """Whether a drain pass is currently running."""
        return self._processing

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def enqueue(self, chunk: AudioChunk) -> bool:
        """Append a chunk and make sure a drain pass is running (non-blocking).

        Returns:
            False if the chunk was dropped (empty, or queue cancelled).
        """
        if not chunk.data:
            logger.debug("Dropping empty audio chunk")
            return False
        if self._cancelled:
            logger.debug("Dropping audio chunk enqueued after cancel")
            return False

        self._sequence += 1
        sequenced = chunk.model_copy(update={"sequence": self._sequence})
        self._queue.put_nowait((self._generation, sequenced))

        if not self._processing:
            self._processing = True
            self._task = asyncio.create_task(self._drain())
        return True

    def cancel(self) -> None:
        """Drop pending chunks and discard any in-flight result."""
        self._cancelled = True
        self._generation += 1
        dropped = self._clear()
        if dropped:
            logger.info("Audio chunk queue cancelled; dropped %s pending chunks", dropped)

    def reset(self) -> None:
        """Re-arm a cancelled queue for a new recording."""
        self._cancelled = False
        self._generation += 1
        self._sequence = 0
        self._clear()

    async def join(self) -> None:
        """Wait for the current drain pass, if any, to finish."""
        if self._task is not None:
            await self._task

    def _clear(self) -> int:
        dropped = 0
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            dropped += 1
        return dropped

    async def _drain(self) -> None:
        """Transcribe queued chunks one by one until the queue is empty."""
        try:
            while not self._queue.empty():
                try:
                    generation, chunk = self._queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
                await self._process_one(generation, chunk)
        finally:
            self._processing = False

    async def _process_one(self, generation: int, chunk: AudioChunk) -> None:
        try:
            text = await self._transcriber.transcribe(chunk)
        except Exception as exc:
            error = (
                exc
                if isinstance(exc, TranscriptionError)
                else TranscriptionError(detail=f"Error transcribiendo fragmento: {exc}")
            )
            logger.warning("Transcription failed for chunk %s: %s", chunk.sequence, error.detail)
            if generation == self._generation and self._on_error is not None:
                await self._on_error(error)
            return

        if generation != self._generation:
            logger.debug("Discarding transcript of chunk %s from a cancelled session", chunk.sequence)
            return
        if not text or not text.strip():
            return
        try:
            await self._on_text(text.strip())
        except Exception:
            logger.exception("Text callback failed for chunk %s", chunk.sequence)
