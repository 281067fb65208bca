"""WebSocket endpoint for report dictation.

One connection per open editor of a report. The client sends:

- binary frames: recorder timeslices (container given by ``mime_type``),
  transcribed in arrival order while recording, or buffered while
  capturing and transcribed as one recording on ``stop_capture``;
- JSON commands (``{"type": ...}``): ``focus``, ``blur``,
  ``start_recording``, ``stop_recording``, ``start_capture``,
  ``stop_capture``, ``start_listening``, ``stop_listening``,
  ``toggle_listening`` and ``recognition`` events (``start``, ``result``,
  ``error``, ``end``) from the client recognizer.

The server pushes ``WebSocketMessage`` objects: field updates, notices,
gate snapshots, step changes, capture status and ``recognition`` control
commands. A malformed command is logged and skipped; it never ends the
connection.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from surgical_report.core.config import get_settings
from surgical_report.core.exceptions import ReportNotFoundError, SurgicalReportError
from surgical_report.core.models import (
    RecognitionResult,
    WebSocketMessage,
    WebSocketMessageType,
)
from surgical_report.services import report
from surgical_report.services.dictation.recognition import (
    RemoteRecognitionEngine,
    SpeechRecognitionAdapter,
)
from surgical_report.services.report import ReportSession

logger = logging.getLogger(__name__)

router = APIRouter()


async def _pump(websocket: WebSocket, outbox: asyncio.Queue[WebSocketMessage]) -> None:
    """Forward queued events to the client until cancelled."""
    while True:
        message = await outbox.get()
        await websocket.send_json(message.model_dump(mode="json"))


async def _handle_recognition(adapter: SpeechRecognitionAdapter, command: dict) -> None:
    event = command.get("event")
    if event == "start":
        await adapter.handle_start()
    elif event == "result":
        results = [RecognitionResult.model_validate(r) for r in command.get("results", [])]
        await adapter.handle_results(results, int(command.get("result_index", 0)))
    elif event == "error":
        await adapter.handle_error(command.get("error"))
    elif event == "end":
        await adapter.handle_end()
    else:
        logger.warning("Unknown recognition event: %r", event)


async def _handle_command(
    session: ReportSession, adapter: SpeechRecognitionAdapter, command: dict
) -> None:
    kind = command.get("type")
    dictation = session.dictation
    if kind == "focus":
        session.focus(
            command["field_id"],
            command.get("selection_start"),
            command.get("selection_end"),
        )
    elif kind == "blur":
        session.blur()
    elif kind == "start_recording":
        dictation.start_recording()
    elif kind == "stop_recording":
        dictation.stop_recording()
    elif kind == "start_capture":
        await dictation.start_capture()
    elif kind == "stop_capture":
        await dictation.stop_and_transcribe()
    elif kind == "start_listening":
        await dictation.start_listening()
    elif kind == "stop_listening":
        await dictation.stop_listening()
    elif kind == "toggle_listening":
        if dictation.recognition is None:
            await dictation.start_listening()
        else:
            await dictation.recognition.toggle()
    elif kind == "recognition":
        # Events from a recognizer that another editor has since replaced
        if dictation.recognition is adapter:
            await _handle_recognition(adapter, command)
    else:
        logger.warning("Unknown dictation command: %r", kind)


@router.websocket("/ws/dictation/{report_id}")
async def dictation_ws(
    websocket: WebSocket,
    report_id: str,
    mime_type: str = Query("audio/webm"),
    recognition: bool = Query(True),
) -> None:
    """Real-time dictation endpoint for one report.

    Query params:
        mime_type: Container of the binary audio frames.
        recognition: Whether the client has a speech recognizer.
    """
    await websocket.accept()
    try:
        session = report.get_report(report_id)
    except ReportNotFoundError as exc:
        await websocket.send_json(
            WebSocketMessage(
                type=WebSocketMessageType.notification,
                data={"level": "error", "title": exc.detail, "code": exc.code},
            ).model_dump(mode="json")
        )
        await websocket.close(code=1008)
        return

    logger.info("Dictation WebSocket connected for report %s", report_id)
    settings = get_settings()
    outbox = session.subscribe()

    async def _send_recognition(command: dict) -> None:
        outbox.put_nowait(
            WebSocketMessage(type=WebSocketMessageType.recognition, data=command)
        )

    engine = RemoteRecognitionEngine(
        _send_recognition,
        language=settings.dictation_language,
        supported=recognition,
    )
    adapter = session.dictation.attach_engine(engine)

    await websocket.send_json(
        WebSocketMessage(
            type=WebSocketMessageType.connected,
            data={
                "report_id": report_id,
                "step": session.step.value,
                "language": settings.dictation_language,
                "timeslice_ms": settings.dictation_timeslice_ms,
            },
        ).model_dump(mode="json")
    )
    sender = asyncio.create_task(_pump(websocket, outbox))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if message.get("bytes") is not None:
                session.dictation.add_chunk(message["bytes"], mime_type)
                continue
            try:
                command = json.loads(message.get("text") or "")
            except json.JSONDecodeError:
                logger.warning("Ignoring malformed dictation frame for report %s", report_id)
                continue
            if not isinstance(command, dict):
                logger.warning("Ignoring non-object dictation frame for report %s", report_id)
                continue
            try:
                await _handle_command(session, adapter, command)
            except SurgicalReportError as exc:
                await session.notify_error(exc)
            except KeyError as exc:
                logger.warning("Dictation command %r is missing %s", command.get("type"), exc)
            except (ValueError, TypeError, PydanticValidationError) as exc:
                logger.warning("Ignoring invalid dictation command %r: %s", command.get("type"), exc)
    except WebSocketDisconnect:
        pass
    finally:
        logger.info("Dictation WebSocket disconnected for report %s", report_id)
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
        session.unsubscribe(outbox)
        # Another editor may have attached its own recognizer since
        if not session.closed and session.dictation.recognition is adapter:
            session.dictation.stop_recording()
            session.dictation.discard_capture()
            await session.dictation.detach_engine()
