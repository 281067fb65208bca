"""Continuous speech recognition with final-only output and auto-restart.

The recognizer itself (Web Speech API in the browser) produces interim and
final results and may end on its own, for example after a silence timeout.
``SpeechRecognitionAdapter`` turns that stream into finalized
``TranscriptSegment`` objects and restarts listening when the stream ended
without the user asking for it.

State is two explicit booleans:

- ``listening``: the engine reported it started and has not ended.
- ``user_requested_stop``: the last transition was a user ``stop()``.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from surgical_report.core.exceptions import RecognitionError
from surgical_report.core.models import RecognitionResult, TranscriptSegment
from surgical_report.services.dictation.notifications import ErrorDeduplicator

logger = logging.getLogger(__name__)

SegmentCallback = Callable[[TranscriptSegment], Awaitable[None]]
RecognitionErrorCallback = Callable[[RecognitionError], Awaitable[None]]


class RecognitionEngine(ABC):
    """A continuous recognizer that can be started and stopped.

    Engines report back through the adapter's ``handle_*`` methods.
    """

    supported: bool = True

    @abstractmethod
    async def start(self) -> None:
        """Begin (or resume) listening."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop listening; the engine reports ``end`` afterwards."""


class RemoteRecognitionEngine(RecognitionEngine):
    """Drives a recognizer running in the client by sending control messages.

    Args:
        send: Async callable delivering a JSON-able command to the client.
        language: BCP-47 language tag for the recognizer.
        supported: Whether the client reported a recognizer at all.
    """

    def __init__(
        self,
        send: Callable[[dict], Awaitable[None]],
        language: str = "es-ES",
        supported: bool = True,
    ) -> None:
        self._send = send
        self._language = language
        self.supported = supported

    async def start(self) -> None:
        await self._send(
            {
                "action": "start",
                "lang": self._language,
                "continuous": True,
                "interimResults": True,
                "maxAlternatives": 1,
            }
        )

    async def stop(self) -> None:
        await self._send({"action": "stop"})


class SpeechRecognitionAdapter:
    """Final-result filter and restart policy around a ``RecognitionEngine``.

    Args:
        engine: The underlying recognizer.
        on_final: Receives each finalized, non-blank segment.
        on_error: Receives each distinct recognizer error once.
        auto_restart: Re-enter listening when the engine ends by itself.
    """

    def __init__(
        self,
        engine: RecognitionEngine,
        on_final: SegmentCallback,
        on_error: RecognitionErrorCallback | None = None,
        auto_restart: bool = True,
    ) -> None:
        self._engine = engine
        self._on_final = on_final
        self._on_error = on_error
        self.auto_restart = auto_restart
        self.listening = False
        self.user_requested_stop = True
        self.error: str | None = None
        self._errors = ErrorDeduplicator()

    @property
    def supported(self) -> bool:
        return self._engine.supported

    async def start(self) -> None:
        """User-initiated start. Clears the previous error."""
        if not self._engine.supported:
            await self._surface("unsupported")
            return
        self.user_requested_stop = False
        self.error = None
        self._errors.clear()
        if self.listening:
            return
        try:
            await self._engine.start()
        except Exception as exc:
            logger.warning("Speech recognizer failed to start: %s", exc)
            await self._surface("start-failed")

    async def stop(self) -> None:
        """User-initiated stop. Always ends in Idle and suppresses auto-restart."""
        self.user_requested_stop = True
        self.listening = False
        try:
            await self._engine.stop()
        except Exception as exc:
            logger.warning("Speech recognizer failed to stop cleanly: %s", exc)

    async def toggle(self) -> None:
        if self.listening:
            await self.stop()
        else:
            await self.start()

    # -- engine events --

    async def handle_start(self) -> None:
        self.listening = True

    async def handle_results(
        self, results: list[RecognitionResult], result_index: int = 0
    ) -> None:
        """Forward only final results from ``result_index`` onwards."""
        for result in results[result_index:]:
            if not result.is_final:
                continue
            text = result.transcript.strip()
            if text:
                await self._on_final(TranscriptSegment(text=text))

    async def handle_error(self, reason: str | None) -> None:
        await self._surface(reason or "speech-error")

    async def handle_end(self) -> None:
        self.listening = False
        if self.user_requested_stop or not self.auto_restart:
            return
        logger.debug("Speech recognizer ended without a user stop; restarting")
        try:
            await self._engine.start()
        except Exception as exc:
            logger.warning("Speech recognizer restart failed: %s", exc)

    async def _surface(self, reason: str) -> None:
        self.error = reason
        if not self._errors.report(reason):
            return
        logger.info("Speech recognition error: %s", reason)
        if self._on_error is not None:
            await self._on_error(RecognitionError(reason))
