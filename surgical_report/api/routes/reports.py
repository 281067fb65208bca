"""
Report REST endpoints.

Open/close report sessions, edit and focus description fields, drive the
step navigation through the validation gate, and manage the procedure
lists. All endpoints delegate to ``ReportSession``; no business logic here.
"""

import logging

from fastapi import APIRouter, Body

from surgical_report.core.models import (
    DictationInsert,
    ErrorResponse,
    FieldResponse,
    FieldUpdate,
    FocusRequest,
    Procedure,
    ProcedureKind,
    ReportCreate,
    ReportResponse,
    SubmissionResponse,
)
from surgical_report.services import report

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reports",
    tags=["reports"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


@router.post("", response_model=ReportResponse, status_code=201)
async def create_report(body: ReportCreate):
    """Open a new report session."""
    session = report.create_report(body.patient_id, body.scheduled_procedures)
    return session.to_response()


@router.get("", response_model=list[ReportResponse])
async def list_reports():
    return [session.to_response() for session in report.list_reports()]


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(report_id: str):
    return report.get_report(report_id).to_response()


@router.delete("/{report_id}", status_code=204)
async def delete_report(report_id: str) -> None:
    """Close a report: cancels dictation and any running countdown."""
    await report.close_report(report_id)


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------


@router.put("/{report_id}/fields/{field_id}", response_model=FieldResponse)
async def update_field(report_id: str, field_id: str, body: FieldUpdate):
    field = report.get_report(report_id).update_field(field_id, body.value)
    return field.to_response()


@router.put("/{report_id}/focus", response_model=FieldResponse)
async def focus_field(report_id: str, body: FocusRequest):
    """Mark a field as the dictation target, with its caret/selection."""
    field = report.get_report(report_id).focus(
        body.field_id, body.selection_start, body.selection_end
    )
    return field.to_response()


@router.delete("/{report_id}/focus", status_code=204)
async def blur_field(report_id: str) -> None:
    report.get_report(report_id).blur()


@router.post("/{report_id}/dictation", response_model=FieldResponse)
async def insert_dictation(report_id: str, body: DictationInsert):
    """Insert text recognized client-side at the focused field's caret."""
    field = report.get_report(report_id).insert_text(body.text)
    return field.to_response()


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


@router.post("/{report_id}/next", response_model=SubmissionResponse)
async def next_step(report_id: str):
    """Advance from the current tab.

    On the description tab this validates the step remotely; the response
    carries the resulting gate state and verdict.
    """
    return await report.get_report(report_id).next_step()


@router.post("/{report_id}/proceed", response_model=SubmissionResponse)
async def proceed(report_id: str):
    return await report.get_report(report_id).proceed()


@router.post("/{report_id}/back", response_model=ReportResponse)
async def go_back(report_id: str):
    session = report.get_report(report_id)
    await session.go_back()
    return session.to_response()


@router.post("/{report_id}/alerts/dismiss")
async def dismiss_alerts(report_id: str):
    """Close the alerts panel; refused while the countdown lock is active."""
    session = report.get_report(report_id)
    dismissed = await session.dismiss_alerts()
    return {"dismissed": dismissed, "submission": session.submission.snapshot()}


# ---------------------------------------------------------------------------
# Procedures
# ---------------------------------------------------------------------------


@router.post("/{report_id}/procedures/{kind}", response_model=Procedure, status_code=201)
async def add_procedure(report_id: str, kind: ProcedureKind, body: dict = Body(...)):
    """Add a procedure; the body is validated against the procedure schema."""
    return report.get_report(report_id).add_procedure(kind, body)


@router.delete("/{report_id}/procedures/{kind}/{index}", response_model=Procedure)
async def remove_procedure(report_id: str, kind: ProcedureKind, index: int):
    return report.get_report(report_id).procedures.remove(kind, index)


@router.post("/{report_id}/procedures/performed/{index}/primary", response_model=Procedure)
async def toggle_primary(report_id: str, index: int):
    return report.get_report(report_id).procedures.set_primary(index)


@router.post("/{report_id}/suggestions", response_model=list[Procedure])
async def suggest_procedures(report_id: str):
    """Ask the suggestion provider for procedures matching the findings."""
    return await report.get_report(report_id).suggest_procedures()


@router.post("/{report_id}/suggestions/{index}/accept", response_model=Procedure)
async def accept_suggestion(report_id: str, index: int):
    return report.get_report(report_id).procedures.accept_suggestion(index)
