"""Procedure lists of the intervention step.

Entries are validated against the ``Procedure`` schema before they join a
list; invalid data raises ``InvalidProcedureDataError`` and is never stored.
The performed list holds at most one primary procedure.
"""

import logging

from pydantic import ValidationError as PydanticValidationError

from surgical_report.core.exceptions import InvalidProcedureDataError
from surgical_report.core.models import (
    Procedure,
    ProcedureKind,
    ScheduledProcedurePayload,
    SuggestedProcedure,
)
from surgical_report.core.utils import sanitize_code, sanitize_input

logger = logging.getLogger(__name__)


def validate_procedure(data: dict | Procedure) -> Procedure:
    """Validate raw procedure data against the local schema.

    Raises:
        InvalidProcedureDataError: With the first schema error as detail.
    """
    raw = data.model_dump() if isinstance(data, Procedure) else data
    try:
        return Procedure.model_validate(raw)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "procedure"
        raise InvalidProcedureDataError(detail=f"{location}: {first['msg']}") from exc


def to_payload(procedure: Procedure) -> ScheduledProcedurePayload:
    """Sanitized wire representation used by the webhooks."""
    return ScheduledProcedurePayload(
        codigo=sanitize_code(procedure.code),
        descripcion=sanitize_input(procedure.name, max_length=500),
        via=sanitize_input(procedure.via, max_length=100),
    )


def from_suggestion(suggestion: SuggestedProcedure) -> Procedure:
    """Turn a provider suggestion into a validated ``Procedure``."""
    return validate_procedure(
        {
            "code": sanitize_code(suggestion.codigo),
            "name": sanitize_input(suggestion.descripcion, max_length=500),
            "via": sanitize_input(suggestion.via, max_length=100) or "NO ESPECIFICADA",
        }
    )


class ProcedureLists:
    """Scheduled, performed and suggested procedures of one report."""

    def __init__(self) -> None:
        self._lists: dict[ProcedureKind, list[Procedure]] = {kind: [] for kind in ProcedureKind}

    @property
    def scheduled(self) -> list[Procedure]:
        return list(self._lists[ProcedureKind.scheduled])

    @property
    def performed(self) -> list[Procedure]:
        return list(self._lists[ProcedureKind.performed])

    @property
    def suggested(self) -> list[Procedure]:
        return list(self._lists[ProcedureKind.suggested])

    def add(self, kind: ProcedureKind, data: dict | Procedure) -> Procedure:
        procedure = validate_procedure(data)
        target = self._lists[kind]
        if kind != ProcedureKind.performed:
            procedure = procedure.model_copy(update={"is_primary": False})
        elif procedure.is_primary:
            target[:] = [p.model_copy(update={"is_primary": False}) for p in target]
        elif not any(p.is_primary for p in target):
            # The first performed procedure becomes the primary one
            procedure = procedure.model_copy(update={"is_primary": True})
        target.append(procedure)
        return procedure

    def remove(self, kind: ProcedureKind, index: int) -> Procedure:
        target = self._lists[kind]
        if not 0 <= index < len(target):
            raise InvalidProcedureDataError(detail=f"No {kind} procedure at index {index}")
        return target.pop(index)

    def set_primary(self, index: int) -> Procedure:
        """Toggle the primary flag of a performed procedure, clearing the others."""
        target = self._lists[ProcedureKind.performed]
        if not 0 <= index < len(target):
            raise InvalidProcedureDataError(detail=f"No performed procedure at index {index}")
        new_flag = not target[index].is_primary
        target[:] = [
            p.model_copy(update={"is_primary": new_flag if i == index else False})
            for i, p in enumerate(target)
        ]
        return target[index]

    def replace_suggestions(self, suggestions: list[SuggestedProcedure]) -> list[Procedure]:
        """Replace the suggested list, skipping entries that fail validation."""
        accepted: list[Procedure] = []
        for suggestion in suggestions:
            try:
                accepted.append(from_suggestion(suggestion))
            except InvalidProcedureDataError as exc:
                logger.warning("Skipping invalid suggestion %r: %s", suggestion.codigo, exc.detail)
        self._lists[ProcedureKind.suggested] = accepted
        return list(accepted)

    def accept_suggestion(self, index: int) -> Procedure:
        """Move a suggestion to the performed list."""
        suggestion = self.remove(ProcedureKind.suggested, index)
        return self.add(ProcedureKind.performed, suggestion)

    def scheduled_payload(self) -> tuple[ScheduledProcedurePayload, ...]:
        return tuple(to_payload(p) for p in self._lists[ProcedureKind.scheduled])
