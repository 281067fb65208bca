"""Unit tests for ReportSession navigation, events and the module registry."""

import pytest

from surgical_report.core.exceptions import (
    InvalidProcedureDataError,
    NoActiveFieldError,
    ReportNotFoundError,
    SubmissionConflictError,
)
from surgical_report.core.models import (
    Procedure,
    ProcedureKind,
    ReportStep,
    SubmissionState,
    WebSocketMessageType,
)
from surgical_report.services import report


@pytest.fixture
def session(mock_gateway, transcriber, mock_suggester, manual_clock):
    s = report.ReportSession(
        "r1",
        "patient-1",
        gateway=mock_gateway,
        transcriber=transcriber,
        suggester=mock_suggester,
        sleep=manual_clock.sleep,
    )
    yield s
    s.submission.close()


@pytest.fixture
async def registry():
    yield report
    await report.cleanup()


def _drain(queue) -> list:
    messages = []
    while not queue.empty():
        messages.append(queue.get_nowait())
    return messages


class TestNavigation:
    async def test_team_advances_without_validation(self, session, mock_gateway):
        await session.next_step()

        assert session.step == ReportStep.description
        mock_gateway.submit.assert_not_awaited()

    async def test_description_accepted_moves_to_intervention(self, session, mock_gateway):
        session.step = ReportStep.description
        session.update_field("hallazgos", "Apéndice perforado")

        snapshot = await session.next_step()

        assert snapshot.state == SubmissionState.accepted
        assert session.step == ReportStep.intervention
        payload = mock_gateway.submit.await_args.args[0]
        assert payload.hallazgos == "Apéndice perforado"

    async def test_locked_gate_then_proceed(
        self, session, mock_gateway, verdict_factory, manual_clock
    ):
        session.step = ReportStep.description
        mock_gateway.submit.return_value = verdict_factory("alta")

        snapshot = await session.next_step()
        assert snapshot.gate.open is False
        assert session.step == ReportStep.description
        with pytest.raises(SubmissionConflictError):
            await session.proceed()

        for _ in range(5):
            await manual_clock.tick()
        await session.proceed()

        assert session.step == ReportStep.intervention

    async def test_last_step_has_no_next(self, session):
        session.step = ReportStep.intervention

        with pytest.raises(SubmissionConflictError):
            await session.next_step()

    async def test_go_back(self, session):
        session.step = ReportStep.intervention

        assert await session.go_back() == ReportStep.description
        assert await session.go_back() == ReportStep.team
        assert await session.go_back() == ReportStep.team

    async def test_payload_includes_scheduled_procedures(self, session):
        session.add_procedure(
            ProcedureKind.scheduled,
            {"code": "471101", "name": "Apendicectomía", "via": "LAPAROSCOPICA"},
        )

        payload = session.build_payload()

        assert payload.procedimientos_programados[0].codigo == "471101"


class TestEvents:
    async def test_field_changes_and_gate_are_published(self, session):
        queue = session.subscribe()
        session.step = ReportStep.description

        session.update_field("complicaciones", "Ninguna")
        await session.next_step()

        types = [m.type for m in _drain(queue)]
        assert types[0] == WebSocketMessageType.field_updated
        assert WebSocketMessageType.gate in types
        assert types[-1] == WebSocketMessageType.step

    async def test_gate_message_uses_wire_aliases(self, session, mock_gateway, verdict_factory):
        queue = session.subscribe()
        session.step = ReportStep.description
        mock_gateway.submit.return_value = verdict_factory("media")

        await session.next_step()

        gates = [m for m in _drain(queue) if m.type == WebSocketMessageType.gate]
        verdict = gates[-1].data["verdict"]
        assert verdict["nivel_gravedad_global"] == "media"
        assert verdict["alertas"][0]["descripcion_alerta"] == "Alerta 0"

    async def test_unsubscribe(self, session):
        queue = session.subscribe()
        session.unsubscribe(queue)

        session.update_field("hallazgos", "x")

        assert queue.empty()


class TestProcedures:
    async def test_suggestions_replace_list(self, session, mock_suggester):
        accepted = await session.suggest_procedures()

        assert [p.code for p in accepted] == ["471101"]
        assert session.to_response().suggested_procedures == accepted

    async def test_invalid_procedure_rejected(self, session):
        with pytest.raises(InvalidProcedureDataError):
            session.add_procedure(ProcedureKind.performed, {"code": "1", "name": "no", "via": "x"})


class TestRegistry:
    async def test_create_get_close(self, registry, mock_gateway, transcriber, mock_suggester):
        created = registry.create_report(
            "patient-9",
            [Procedure(code="471101", name="Apendicectomía", via="ABIERTA")],
            gateway=mock_gateway,
            transcriber=transcriber,
            suggester=mock_suggester,
        )

        assert registry.get_report(created.id) is created
        assert created.to_response().scheduled_procedures[0].code == "471101"

        await registry.close_report(created.id)
        assert created.closed
        assert transcriber.closed
        with pytest.raises(ReportNotFoundError):
            registry.get_report(created.id)

    async def test_close_unknown(self, registry):
        with pytest.raises(ReportNotFoundError):
            await registry.close_report("missing")

    async def test_cleanup_closes_everything(
        self, registry, mock_gateway, transcriber, mock_suggester
    ):
        created = registry.create_report(
            "p", gateway=mock_gateway, transcriber=transcriber, suggester=mock_suggester
        )

        await registry.cleanup()

        assert created.closed
        assert registry.list_reports() == []


class TestInsertText:
    async def test_inserts_at_focus(self, session):
        session.focus("hallazgos")

        field = session.insert_text("Líquido libre ")

        assert field.value == "Líquido libre "

    async def test_without_focus_raises(self, session):
        with pytest.raises(NoActiveFieldError):
            session.insert_text("perdido")
