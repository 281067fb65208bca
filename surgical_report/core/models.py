"""
Pydantic v2 models shared by the services and the API layer.

Wire formats of the external webhooks keep their Spanish keys through
field aliases; Python code uses the English attribute names.
"""

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Dictation
# ---------------------------------------------------------------------------


class AudioChunk(BaseModel):
    """One recorder timeslice waiting for transcription."""

    data: bytes
    mime_type: str = "audio/webm"
    sequence: int = 0


class TranscriptSegment(BaseModel):
    """A finalized piece of recognized speech. Interim results never become one."""

    text: str
    finalized: Literal[True] = True


class RecognitionResult(BaseModel):
    """One entry of a recognizer result list (best alternative only)."""

    transcript: str = ""
    is_final: bool = False


class NotificationLevel(StrEnum):
    """Visual weight of a user notification."""

    info = "info"
    warning = "warning"
    error = "error"


class Notification(BaseModel):
    """A user-visible notice (toast) pushed to the client."""

    level: NotificationLevel = NotificationLevel.error
    title: str
    description: str = ""
    code: str = ""


# ---------------------------------------------------------------------------
# Validation webhook
# ---------------------------------------------------------------------------


class Severity(StrEnum):
    """Global criticality of a validation verdict."""

    alta = "alta"
    media = "media"
    baja = "baja"

    @property
    def rank(self) -> int:
        return {"baja": 0, "media": 1, "alta": 2}[self.value]


class ValidationAlert(BaseModel):
    """A single finding returned by the validation webhook.

    ``field``, ``kind`` and ``impact`` are kept as sent. Known values are
    ``hallazgos | Detalle quirurgico | complicaciones | procedimientos_realizados
    | procedimientos_programados | consistencia_general``,
    ``dato_faltante | dato_incompleto | dato_confuso | inconsistencia`` and
    ``alto | medio | bajo``; anything else is still displayed.
    """

    model_config = ConfigDict(populate_by_name=True)

    field: str = Field(alias="campo")
    kind: str = Field(alias="tipo")
    description: str = Field(alias="descripcion_alerta")
    impact: str = Field(default="", alias="impacto")
    guiding_questions: list[str] = Field(default_factory=list, alias="preguntas_guia")


class ValidationVerdict(BaseModel):
    """Validation webhook response.

    ``has_alerts`` is always recomputed from ``alerts`` so the two can never
    disagree, whatever the remote service claims.
    """

    model_config = ConfigDict(populate_by_name=True)

    has_alerts: bool = Field(default=False, alias="tiene_alertas")
    global_severity: Severity = Field(default=Severity.baja, alias="nivel_gravedad_global")
    alerts: list[ValidationAlert] = Field(default_factory=list, alias="alertas")

    @model_validator(mode="after")
    def _sync_has_alerts(self) -> "ValidationVerdict":
        self.has_alerts = bool(self.alerts)
        return self


class ScheduledProcedurePayload(BaseModel):
    """Scheduled procedure as sent to the webhooks."""

    model_config = ConfigDict(frozen=True)

    codigo: str
    descripcion: str
    via: str


class FormStepPayload(BaseModel):
    """Immutable snapshot of the description step at submission time."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    hallazgos: str = ""
    detalle_quirurgico: str = Field(default="", alias="detalleQuirurgico")
    complicaciones: str = ""
    procedimientos_programados: tuple[ScheduledProcedurePayload, ...] = ()


class SubmissionState(StrEnum):
    """States of the submit -> validate -> gate flow."""

    idle = "idle"
    submitting = "submitting"
    accepted = "accepted"
    alerted_open = "alerted_open"
    alerted_locked = "alerted_locked"


class GateState(BaseModel):
    """Proceed/block control on step navigation."""

    open: bool = True
    remaining_seconds: int = 0


# ---------------------------------------------------------------------------
# Procedures
# ---------------------------------------------------------------------------


class ProcedureKind(StrEnum):
    """The three procedure lists of the intervention step."""

    scheduled = "scheduled"
    performed = "performed"
    suggested = "suggested"


class Procedure(BaseModel):
    """A surgical procedure entry, validated before it joins any list."""

    code: str = Field(min_length=1, max_length=50, pattern=r"^[a-zA-Z0-9\-_\s]+$")
    name: str = Field(min_length=3, max_length=500)
    via: str = Field(min_length=2, max_length=100)
    reason: str | None = Field(default=None, max_length=500)
    quantity: int | None = Field(default=None, ge=1, le=99)
    is_primary: bool = False


class SuggestedProcedure(BaseModel):
    """A procedure proposed by the suggestion provider."""

    codigo: str
    descripcion: str
    via: str = ""


class SuggestionResponse(BaseModel):
    """Suggestion provider response envelope."""

    procedimientos_sugeridos: list[SuggestedProcedure] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Reports (API)
# ---------------------------------------------------------------------------


class ReportStep(StrEnum):
    """Tabs of the surgical report, in navigation order."""

    team = "team"
    description = "description"
    intervention = "intervention"


class ReportCreate(BaseModel):
    """POST /reports request body."""

    patient_id: str = Field(min_length=1, max_length=64)
    scheduled_procedures: list[Procedure] = Field(default_factory=list)


class FieldUpdate(BaseModel):
    """PUT /reports/{id}/fields/{field_id} request body."""

    value: str


class DictationInsert(BaseModel):
    """POST /reports/{id}/dictation request body."""

    text: str = Field(min_length=1)


class FocusRequest(BaseModel):
    """PUT /reports/{id}/focus request body."""

    field_id: str
    selection_start: int | None = Field(default=None, ge=0)
    selection_end: int | None = Field(default=None, ge=0)


class FieldResponse(BaseModel):
    """Current state of one text field."""

    field_id: str
    value: str
    selection_start: int
    selection_end: int
    max_length: int | None = None


class SubmissionResponse(BaseModel):
    """State of the validation gate for the description step."""

    state: SubmissionState
    gate: GateState
    verdict: ValidationVerdict | None = None


class ReportResponse(BaseModel):
    """Standard report representation returned by the API."""

    id: str
    patient_id: str
    step: ReportStep
    fields: list[FieldResponse] = Field(default_factory=list)
    active_field: str | None = None
    submission: SubmissionResponse
    scheduled_procedures: list[Procedure] = Field(default_factory=list)
    performed_procedures: list[Procedure] = Field(default_factory=list)
    suggested_procedures: list[Procedure] = Field(default_factory=list)
    created_at: datetime


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


class WebSocketMessageType(StrEnum):
    """Discriminator for messages sent over the dictation WebSocket."""

    connected = "connected"
    field_updated = "field_updated"
    notification = "notification"
    gate = "gate"
    step = "step"
    recognition = "recognition"
    dictation = "dictation"


class WebSocketMessage(BaseModel):
    """JSON message sent from server to client over WebSocket."""

    type: WebSocketMessageType
    data: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Error
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the API."""

    detail: str
    code: str
    timestamp: str
