"""In-memory surgical report sessions.

A ``ReportSession`` is everything one open report needs: the description
text fields, the procedure lists, the current tab, the validation gate of the
description step and the dictation pipeline. Connected clients receive
pushed ``WebSocketMessage`` events through subscriber queues.

Sessions live only in memory and are managed by the module-level registry::

    from surgical_report.services import report

    session = report.create_report("patient-1")
    await session.next_step()
    await report.close_report(session.id)
"""

import asyncio
import logging
import uuid
from datetime import UTC, datetime

from surgical_report.core.config import get_settings
from surgical_report.core.exceptions import (
    NoActiveFieldError,
    ReportNotFoundError,
    SubmissionConflictError,
    SurgicalReportError,
)
from surgical_report.core.models import (
    FormStepPayload,
    Notification,
    NotificationLevel,
    Procedure,
    ProcedureKind,
    ReportResponse,
    ReportStep,
    Severity,
    SubmissionResponse,
    WebSocketMessage,
    WebSocketMessageType,
)
from surgical_report.services.dictation.session import DictationSession
from surgical_report.services.form.fields import ActiveFieldInjector, FormDocument, TextField
from surgical_report.services.form.procedures import ProcedureLists
from surgical_report.services.transcription import BaseTranscriber, create_transcriber
from surgical_report.services.validation.countdown import SleepFunc
from surgical_report.services.validation.gateway import ValidationGateway
from surgical_report.services.validation.state_machine import SubmissionStateMachine
from surgical_report.services.validation.suggestion import BaseSuggester, create_suggester

logger = logging.getLogger(__name__)

DESCRIPTION_FIELDS = ("hallazgos", "detalleQuirurgico", "complicaciones")
STEP_ORDER = (ReportStep.team, ReportStep.description, ReportStep.intervention)


class ReportSession:
    """State and collaborators of one open surgical report.

    Args:
        report_id: Unique session identifier.
        patient_id: Patient the report belongs to.
        gateway: Validation webhook client (created from settings if omitted).
        transcriber: Dictation transcription provider.
        suggester: Procedure suggestion provider.
        sleep: Sleep coroutine for the validation countdown.
    """

    def __init__(
        self,
        report_id: str,
        patient_id: str,
        gateway: ValidationGateway | None = None,
        transcriber: BaseTranscriber | None = None,
        suggester: BaseSuggester | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self.id = report_id
        self.patient_id = patient_id
        self.step = ReportStep.team
        self.created_at = datetime.now(UTC)
        self._subscribers: list[asyncio.Queue[WebSocketMessage]] = []
        self._closed = False

        self.document = FormDocument()
        for field_id in DESCRIPTION_FIELDS:
            field = self.document.add_field(
                TextField(field_id, max_length=settings.field_max_length)
            )
            field.subscribe(self._on_field_change)

        self.procedures = ProcedureLists()

        self._gateway = gateway or ValidationGateway()
        self._suggester = suggester or create_suggester()
        self.submission = SubmissionStateMachine(
            self._gateway,
            on_advance=self._advance_from_description,
            notify=self.notify,
            on_change=self._publish_gate,
            lock_seconds=settings.validation_lock_seconds,
            lock_severity=Severity(settings.validation_lock_severity),
            sleep=sleep,
        )
        self._injector = ActiveFieldInjector(self.document)
        self.dictation = DictationSession(
            self._injector,
            transcriber or create_transcriber(settings.transcription_provider),
            notify=self.notify,
            auto_restart=settings.recognition_auto_restart,
            on_status=self._publish_dictation,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    # -- events --

    def subscribe(self) -> asyncio.Queue[WebSocketMessage]:
        """Return a queue receiving every event pushed by this report."""
        queue: asyncio.Queue[WebSocketMessage] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[WebSocketMessage]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, message: WebSocketMessage) -> None:
        for queue in self._subscribers:
            queue.put_nowait(message)

    async def notify(self, notification: Notification) -> None:
        logger.info("Report %s notice: %s", self.id, notification.title)
        self.publish(
            WebSocketMessage(
                type=WebSocketMessageType.notification,
                data=notification.model_dump(mode="json"),
            )
        )

    async def notify_error(self, exc: SurgicalReportError) -> None:
        await self.notify(
            Notification(level=NotificationLevel.error, title=exc.detail, code=exc.code)
        )

    def _on_field_change(self, field: TextField) -> None:
        self.publish(
            WebSocketMessage(
                type=WebSocketMessageType.field_updated,
                data=field.to_response().model_dump(mode="json"),
            )
        )

    async def _publish_gate(self, snapshot: SubmissionResponse) -> None:
        self.publish(
            WebSocketMessage(
                type=WebSocketMessageType.gate,
                data=snapshot.model_dump(mode="json", by_alias=True),
            )
        )

    async def _publish_dictation(self, status: dict) -> None:
        self.publish(WebSocketMessage(type=WebSocketMessageType.dictation, data=status))

    # -- form --

    def update_field(self, field_id: str, value: str) -> TextField:
        field = self.document.get(field_id)
        field.set_value(value)
        return field

    def focus(
        self,
        field_id: str,
        selection_start: int | None = None,
        selection_end: int | None = None,
    ) -> TextField:
        return self.document.focus(field_id, selection_start, selection_end)

    def blur(self) -> None:
        self.document.blur()

    def insert_text(self, text: str) -> TextField:
        """Insert externally recognized text at the focused field's caret.

        Raises:
            NoActiveFieldError: If no field has focus or it is full.
        """
        field = self.document.active_field
        if field is None or not self._injector.insert(text):
            raise NoActiveFieldError()
        return field

    def build_payload(self) -> FormStepPayload:
        """Snapshot of the description step for validation."""
        return FormStepPayload(
            hallazgos=self.document.get("hallazgos").value,
            detalle_quirurgico=self.document.get("detalleQuirurgico").value,
            complicaciones=self.document.get("complicaciones").value,
            procedimientos_programados=self.procedures.scheduled_payload(),
        )

    # -- navigation --

    async def next_step(self) -> SubmissionResponse:
        """Handle the "next" control of the current tab.

        The description tab goes through remote validation; the team tab
        advances directly.

        Raises:
            SubmissionConflictError: On the last tab, or while the gate is busy.
        """
        if self.step == ReportStep.team:
            await self._go_to(ReportStep.description)
        elif self.step == ReportStep.description:
            await self.submission.submit(self.build_payload())
        else:
            raise SubmissionConflictError("Already at the last step of the report")
        return self.submission.snapshot()

    async def proceed(self) -> SubmissionResponse:
        """Advance past validation alerts once the gate allows it."""
        if self.step != ReportStep.description:
            raise SubmissionConflictError("Only the description step has a validation gate")
        await self.submission.proceed()
        return self.submission.snapshot()

    async def dismiss_alerts(self) -> bool:
        return await self.submission.dismiss()

    async def go_back(self) -> ReportStep:
        index = STEP_ORDER.index(self.step)
        if index > 0:
            await self._go_to(STEP_ORDER[index - 1])
        return self.step

    async def _advance_from_description(self) -> None:
        if self.step == ReportStep.description:
            await self._go_to(ReportStep.intervention)

    async def _go_to(self, step: ReportStep) -> None:
        logger.info("Report %s: %s -> %s", self.id, self.step, step)
        self.step = step
        self.publish(WebSocketMessage(type=WebSocketMessageType.step, data={"step": step.value}))

    # -- procedures --

    def add_procedure(self, kind: ProcedureKind, data: dict | Procedure) -> Procedure:
        return self.procedures.add(kind, data)

    async def suggest_procedures(self) -> list[Procedure]:
        """Ask the suggestion provider and replace the suggested list."""
        suggestions = await self._suggester.suggest(
            self.document.get("hallazgos").value,
            self.procedures.scheduled_payload(),
        )
        accepted = self.procedures.replace_suggestions(suggestions)
        logger.info(
            "Report %s: %s procedures suggested, %s accepted",
            self.id,
            len(suggestions),
            len(accepted),
        )
        return accepted

    # -- lifecycle --

    def to_response(self) -> ReportResponse:
        active = self.document.active_field
        return ReportResponse(
            id=self.id,
            patient_id=self.patient_id,
            step=self.step,
            fields=[field.to_response() for field in self.document.fields],
            active_field=active.field_id if active else None,
            submission=self.submission.snapshot(),
            scheduled_procedures=self.procedures.scheduled,
            performed_procedures=self.procedures.performed,
            suggested_procedures=self.procedures.suggested,
            created_at=self.created_at,
        )

    async def close(self) -> None:
        """Tear down dictation, cancel countdowns and release HTTP clients."""
        if self._closed:
            return
        self._closed = True
        self.submission.close()
        await self.dictation.close()
        await self._gateway.aclose()
        await self._suggester.aclose()
        self._subscribers.clear()
        logger.info("Report %s closed", self.id)


# ---------------------------------------------------------------------------
# Module-level registry
# ---------------------------------------------------------------------------

_reports: dict[str, ReportSession] = {}


def create_report(
    patient_id: str,
    scheduled_procedures: list[Procedure] | None = None,
    **kwargs,
) -> ReportSession:
    """Open a new report session for ``patient_id``.

    Raises:
        InvalidProcedureDataError: If a scheduled procedure is invalid.
    """
    session = ReportSession(report_id=uuid.uuid4().hex, patient_id=patient_id, **kwargs)
    for procedure in scheduled_procedures or []:
        session.add_procedure(ProcedureKind.scheduled, procedure)
    _reports[session.id] = session
    logger.info("Opened report %s for patient %s", session.id, patient_id)
    return session


def get_report(report_id: str) -> ReportSession:
    """Return an open report.

    Raises:
        ReportNotFoundError: If no open report has this ID.
    """
    try:
        return _reports[report_id]
    except KeyError:
        raise ReportNotFoundError(report_id) from None


def list_reports() -> list[ReportSession]:
    return list(_reports.values())


async def close_report(report_id: str) -> None:
    session = _reports.pop(report_id, None)
    if session is None:
        raise ReportNotFoundError(report_id)
    await session.close()


async def cleanup() -> None:
    """Close every open report (called during app shutdown)."""
    for report_id in list(_reports):
        session = _reports.pop(report_id)
        try:
            await session.close()
        except Exception:
            logger.exception("Failed to close report %s", report_id)
