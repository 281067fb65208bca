"""Unit tests for SpeechRecognitionAdapter and RemoteRecognitionEngine."""

from unittest.mock import AsyncMock

import pytest

from surgical_report.core.exceptions import RecognitionError
from surgical_report.core.models import RecognitionResult
from surgical_report.services.dictation.recognition import (
    RecognitionEngine,
    RemoteRecognitionEngine,
    SpeechRecognitionAdapter,
)


class FakeEngine(RecognitionEngine):
    def __init__(self, supported: bool = True, fail_start: bool = False) -> None:
        self.supported = supported
        self.fail_start = fail_start
        self.starts = 0
        self.stops = 0

    async def start(self) -> None:
        self.starts += 1
        if self.fail_start:
            raise RuntimeError("no microphone")

    async def stop(self) -> None:
        self.stops += 1


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def on_final():
    return AsyncMock()


@pytest.fixture
def on_error():
    return AsyncMock()


@pytest.fixture
def adapter(engine, on_final, on_error):
    return SpeechRecognitionAdapter(engine, on_final=on_final, on_error=on_error)


class TestResults:
    async def test_only_final_results_are_forwarded(self, adapter, on_final):
        await adapter.handle_results(
            [
                RecognitionResult(transcript="paciente", is_final=False),
                RecognitionResult(transcript="paciente en decúbito", is_final=True),
            ]
        )

        on_final.assert_awaited_once()
        segment = on_final.await_args.args[0]
        assert segment.text == "paciente en decúbito"
        assert segment.finalized is True

    async def test_results_before_index_are_skipped(self, adapter, on_final):
        await adapter.handle_results(
            [
                RecognitionResult(transcript="ya enviado", is_final=True),
                RecognitionResult(transcript="nuevo", is_final=True),
            ],
            result_index=1,
        )

        assert [c.args[0].text for c in on_final.await_args_list] == ["nuevo"]

    async def test_blank_final_result_is_ignored(self, adapter, on_final):
        await adapter.handle_results([RecognitionResult(transcript="   ", is_final=True)])

        on_final.assert_not_awaited()


class TestStartStop:
    async def test_start_then_engine_start_event_marks_listening(self, adapter, engine):
        await adapter.start()
        assert engine.starts == 1
        assert not adapter.listening

        await adapter.handle_start()
        assert adapter.listening
        assert adapter.user_requested_stop is False

    async def test_start_while_listening_does_not_restart_engine(self, adapter, engine):
        await adapter.start()
        await adapter.handle_start()
        await adapter.start()

        assert engine.starts == 1

    async def test_stop_returns_to_idle(self, adapter, engine):
        await adapter.start()
        await adapter.handle_start()
        await adapter.stop()

        assert engine.stops == 1
        assert not adapter.listening
        assert adapter.user_requested_stop

    async def test_toggle(self, adapter, engine):
        await adapter.toggle()
        await adapter.handle_start()
        await adapter.toggle()

        assert engine.starts == 1
        assert engine.stops == 1

    async def test_unsupported_engine_surfaces_error(self, on_final, on_error):
        adapter = SpeechRecognitionAdapter(
            FakeEngine(supported=False), on_final=on_final, on_error=on_error
        )
        await adapter.start()

        on_error.assert_awaited_once()
        assert on_error.await_args.args[0].reason == "unsupported"
        assert adapter.error == "unsupported"

    async def test_start_failure_surfaces_error(self, on_final, on_error):
        adapter = SpeechRecognitionAdapter(
            FakeEngine(fail_start=True), on_final=on_final, on_error=on_error
        )
        await adapter.start()

        assert on_error.await_args.args[0].reason == "start-failed"


class TestAutoRestart:
    async def test_restarts_when_engine_ends_by_itself(self, adapter, engine):
        await adapter.start()
        await adapter.handle_start()
        await adapter.handle_end()

        assert engine.starts == 2
        assert not adapter.listening

    async def test_no_restart_after_user_stop(self, adapter, engine):
        await adapter.start()
        await adapter.handle_start()
        await adapter.stop()
        await adapter.handle_end()

        assert engine.starts == 1

    async def test_no_restart_when_disabled(self, engine, on_final):
        adapter = SpeechRecognitionAdapter(engine, on_final=on_final, auto_restart=False)
        await adapter.start()
        await adapter.handle_start()
        await adapter.handle_end()

        assert engine.starts == 1


class TestErrorDeduplication:
    async def test_same_error_surfaces_once(self, adapter, on_error):
        await adapter.start()
        await adapter.handle_error("no-speech")
        await adapter.handle_end()
        await adapter.handle_error("no-speech")

        on_error.assert_awaited_once()
        error = on_error.await_args.args[0]
        assert isinstance(error, RecognitionError)
        assert error.reason == "no-speech"

    async def test_different_error_surfaces(self, adapter, on_error):
        await adapter.handle_error("no-speech")
        await adapter.handle_error("audio-capture")

        assert [c.args[0].reason for c in on_error.await_args_list] == [
            "no-speech",
            "audio-capture",
        ]

    async def test_user_start_resets_deduplication(self, adapter, on_error):
        await adapter.handle_error("not-allowed")
        await adapter.start()
        assert adapter.error is None
        await adapter.handle_error("not-allowed")

        assert on_error.await_count == 2

    async def test_missing_reason_defaults(self, adapter, on_error):
        await adapter.handle_error(None)

        assert on_error.await_args.args[0].reason == "speech-error"


class TestRemoteEngine:
    async def test_sends_start_and_stop_commands(self):
        send = AsyncMock()
        engine = RemoteRecognitionEngine(send, language="es-CO")

        await engine.start()
        await engine.stop()

        start_cmd = send.await_args_list[0].args[0]
        assert start_cmd["action"] == "start"
        assert start_cmd["lang"] == "es-CO"
        assert start_cmd["continuous"] is True
        assert start_cmd["interimResults"] is True
        assert send.await_args_list[1].args[0] == {"action": "stop"}
