"""Server-side mirror of the report's text inputs.

``FormDocument`` knows which field has focus and where its caret/selection
is; ``ActiveFieldInjector`` inserts dictated text there. Every mutation fires
the field's change listeners so bound state (and the connected client) stay
in sync.
"""

import logging
from collections.abc import Callable

from surgical_report.core.exceptions import FieldNotFoundError
from surgical_report.core.models import FieldResponse

logger = logging.getLogger(__name__)

FieldListener = Callable[["TextField"], None]


class TextField:
    """A text input with value, selection and an optional length limit."""

    def __init__(self, field_id: str, value: str = "", max_length: int | None = None) -> None:
        self.field_id = field_id
        self.max_length = max_length
        self._value = value
        self.selection_start = len(value)
        self.selection_end = len(value)
        self._listeners: list[FieldListener] = []

    @property
    def value(self) -> str:
        return self._value

    def subscribe(self, listener: FieldListener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_value(self, value: str) -> None:
        """Replace the whole value (user typing). Caret moves to the end."""
        if self.max_length is not None:
            value = value[: self.max_length]
        self._value = value
        self.selection_start = self.selection_end = len(value)
        self._notify()

    def select(self, start: int | None = None, end: int | None = None) -> None:
        """Set the selection, clamped to the value; None means end of text."""
        length = len(self._value)
        start = length if start is None else max(0, min(start, length))
        end = start if end is None else max(0, min(end, length))
        self.selection_start, self.selection_end = min(start, end), max(start, end)

    def set_range_text(self, text: str, start: int, end: int) -> None:
        """Replace ``[start, end)`` with ``text`` and put the caret after it."""
        self._value = self._value[:start] + text + self._value[end:]
        caret = start + len(text)
        self.selection_start = self.selection_end = caret
        self._notify()

    def to_response(self) -> FieldResponse:
        return FieldResponse(
            field_id=self.field_id,
            value=self._value,
            selection_start=self.selection_start,
            selection_end=self.selection_end,
            max_length=self.max_length,
        )

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


class FormDocument:
    """The set of text fields of one report and the current focus."""

    def __init__(self) -> None:
        self._fields: dict[str, TextField] = {}
        self._active_id: str | None = None

    @property
    def fields(self) -> list[TextField]:
        return list(self._fields.values())

    @property
    def active_field(self) -> TextField | None:
        if self._active_id is None:
            return None
        return self._fields.get(self._active_id)

    def add_field(self, field: TextField) -> TextField:
        self._fields[field.field_id] = field
        return field

    def get(self, field_id: str) -> TextField:
        try:
            return self._fields[field_id]
        except KeyError:
            raise FieldNotFoundError(field_id) from None

    def focus(
        self,
        field_id: str,
        selection_start: int | None = None,
        selection_end: int | None = None,
    ) -> TextField:
        field = self.get(field_id)
        field.select(selection_start, selection_end)
        self._active_id = field_id
        return field

    def blur(self) -> None:
        self._active_id = None


class ActiveFieldInjector:
    """Inserts text into whichever field currently has focus.

    Focus is looked up at call time, never cached, because it can change
    while a transcription is in flight.
    """

    def __init__(self, document: FormDocument) -> None:
        self._document = document

    def insert(self, text: str) -> bool:
        """Insert ``text`` at the caret of the focused field.

        Replaces the selected range, truncates to the remaining
        ``max_length`` capacity and fires change listeners.

        Returns:
            False when no field is focused or the field is full; nothing
            is modified in that case.
        """
        field = self._document.active_field
        if field is None:
            return False

        start, end = field.selection_start, field.selection_end
        to_insert = text
        if field.max_length is not None:
            remaining = field.max_length - (len(field.value) - (end - start))
            if remaining <= 0:
                logger.debug("Field %s is full; dictated text not inserted", field.field_id)
                return False
            to_insert = to_insert[:remaining]

        field.set_range_text(to_insert, start, end)
        return True
