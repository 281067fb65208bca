"""User-facing notices raised by the dictation subsystem."""

from collections.abc import Awaitable, Callable

from surgical_report.core.models import Notification, NotificationLevel

NotifyCallback = Callable[[Notification], Awaitable[None]]

NO_ACTIVE_FIELD_NOTICE = Notification(
    level=NotificationLevel.error,
    title="No hay un campo activo",
    description="Haz clic dentro del área de texto antes de dictar.",
    code="NO_ACTIVE_FIELD",
)

UNSUPPORTED_NOTICE = Notification(
    level=NotificationLevel.error,
    title="Dictado no soportado",
    description="Tu navegador no soporta reconocimiento de voz.",
    code="RECOGNITION_UNSUPPORTED",
)


class ErrorDeduplicator:
    """Remembers the last surfaced error value so it is reported only once.

    ``report()`` returns True only when ``value`` differs from the last one
    reported. ``clear()`` forgets it, so the same value surfaces again.
    """

    def __init__(self) -> None:
        self._last: str | None = None

    @property
    def last(self) -> str | None:
        return self._last

    def report(self, value: str) -> bool:
        if value == self._last:
            return False
        self._last = value
        return True

    def clear(self) -> None:
        self._last = None


def recognition_notice(reason: str) -> Notification:
    """Build the notice for a recognizer error."""
    if reason == "unsupported":
        return UNSUPPORTED_NOTICE
    return Notification(
        level=NotificationLevel.error,
        title="Error de dictado",
        description=f"Ocurrió un error: {reason}",
        code="RECOGNITION_ERROR",
    )


def transcription_notice(detail: str) -> Notification:
    """Build the notice for a chunk that could not be transcribed."""
    return Notification(
        level=NotificationLevel.warning,
        title="Error de dictado",
        description=detail or "Error transcribiendo fragmento",
        code="TRANSCRIPTION_ERROR",
    )
