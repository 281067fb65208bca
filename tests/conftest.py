"""Shared pytest fixtures for the surgical report test suite.

Provides scripted transcription/suggestion providers, a manually driven
clock for countdown tests, and factory helpers for validation verdicts.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from surgical_report.core.models import (
    AudioChunk,
    FormStepPayload,
    ScheduledProcedurePayload,
    SuggestedProcedure,
    ValidationVerdict,
)
from surgical_report.services.transcription.base import BaseTranscriber
from surgical_report.services.validation.suggestion import BaseSuggester

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_verdict(severity: str = "baja", alerts: int = 1) -> ValidationVerdict:
    """Build a verdict the way the webhook sends it (Spanish keys)."""
    return ValidationVerdict.model_validate(
        {
            "tiene_alertas": alerts > 0,
            "nivel_gravedad_global": severity,
            "alertas": [
                {
                    "campo": "hallazgos",
                    "tipo": "dato_faltante",
                    "descripcion_alerta": f"Alerta {i}",
                    "impacto": "alto",
                    "preguntas_guia": ["¿Se describió el hallazgo?"],
                }
                for i in range(alerts)
            ],
        }
    )


class ManualClock:
    """Sleep replacement whose wake-ups are released one by one by the test."""

    def __init__(self) -> None:
        self.waiters: list[asyncio.Future] = []
        self.intervals: list[float] = []

    async def sleep(self, interval: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self.intervals.append(interval)
        self.waiters.append(future)
        await future

    async def tick(self) -> None:
        """Release the oldest pending sleep and let the sleeper react."""
        await settle()
        assert self.waiters, "nothing is sleeping"
        self.waiters.pop(0).set_result(None)
        await settle()


class ScriptedTranscriber(BaseTranscriber):
    """Returns ``chunk.data`` decoded as text after a per-chunk delay.

    ``delays`` maps the chunk payload to seconds; ``failures`` lists payloads
    that raise.
    """

    def __init__(self, delays: dict[bytes, float] | None = None, failures=()) -> None:
        self.delays = delays or {}
        self.failures = set(failures)
        self.calls: list[AudioChunk] = []
        self.closed = False

    async def transcribe(self, chunk: AudioChunk) -> str:
        self.calls.append(chunk)
        await asyncio.sleep(self.delays.get(chunk.data, 0))
        if chunk.data in self.failures:
            raise RuntimeError("boom")
        return chunk.data.decode()

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def transcriber():
    return ScriptedTranscriber()


@pytest.fixture
def notify():
    """Async notification sink; inspect ``notify.await_args_list``."""
    return AsyncMock()


@pytest.fixture
def mock_gateway():
    """A ValidationGateway stand-in answering with no alerts."""
    gateway = AsyncMock()
    gateway.submit.return_value = make_verdict(alerts=0)
    return gateway


@pytest.fixture
def mock_suggester():
    suggester = AsyncMock(spec=BaseSuggester)
    suggester.suggest.return_value = [
        SuggestedProcedure(codigo="471101", descripcion="Apendicectomía por laparoscopia", via="LAPAROSCOPICA"),
        SuggestedProcedure(codigo="bad!", descripcion="x", via=""),
    ]
    return suggester


@pytest.fixture
def sample_payload():
    return FormStepPayload(
        hallazgos="Apéndice   inflamado\n\n\n\ncon perforación",
        detalle_quirurgico="Se realiza\tapendicectomía",
        complicaciones="Ninguna",
        procedimientos_programados=(
            ScheduledProcedurePayload(
                codigo="471101", descripcion="Apendicectomía", via="LAPAROSCOPICA"
            ),
        ),
    )


@pytest.fixture
def verdict_factory():
    """``make_verdict(severity, alerts)`` as a fixture."""
    return make_verdict


@pytest.fixture
def run_pending():
    """``settle()`` as a fixture: await it to let background tasks progress."""
    return settle


@pytest.fixture
def transcriber_factory():
    """Build a ``ScriptedTranscriber`` with custom delays/failures."""
    return ScriptedTranscriber
