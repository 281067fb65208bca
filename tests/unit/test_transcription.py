"""Unit tests for the transcription providers (webhook and mocked faster-whisper)."""

import base64
import io
import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest

import surgical_report.services.transcription.whisper as whisper_module
from surgical_report.core.exceptions import TranscriptionError
from surgical_report.core.models import AudioChunk
from surgical_report.services.transcription import create_transcriber
from surgical_report.services.transcription.webhook import WebhookTranscriber
from surgical_report.services.transcription.whisper import WhisperTranscriber

CHUNK = AudioChunk(data=b"\x1a\x45\xdf\xa3webm", mime_type="audio/webm;codecs=opus", sequence=3)


def _webhook(handler) -> WebhookTranscriber:
    return WebhookTranscriber(url="http://stt.test", transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


class TestWebhookTranscriber:
    async def test_sends_base64_audio(self):
        captured = {}

        def handler(request):
            captured.update(json.loads(request.content))
            return httpx.Response(200, json={"text": "  paciente estable  "})

        transcriber = _webhook(handler)
        text = await transcriber.transcribe(CHUNK)
        await transcriber.aclose()

        assert text == "paciente estable"
        assert base64.b64decode(captured["audio"]) == CHUNK.data
        assert captured["mimeType"] == "audio/webm;codecs=opus"

    async def test_missing_text_field(self):
        transcriber = _webhook(lambda request: httpx.Response(200, json={"result": "x"}))

        with pytest.raises(TranscriptionError, match="no 'text' field"):
            await transcriber.transcribe(CHUNK)

    async def test_http_error(self):
        transcriber = _webhook(lambda request: httpx.Response(502))

        with pytest.raises(TranscriptionError, match="502"):
            await transcriber.transcribe(CHUNK)

    async def test_timeout(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        with pytest.raises(TranscriptionError, match="timed out"):
            await _webhook(handler).transcribe(CHUNK)

    async def test_invalid_json(self):
        transcriber = _webhook(lambda request: httpx.Response(200, text="nope"))

        with pytest.raises(TranscriptionError, match="invalid JSON"):
            await transcriber.transcribe(CHUNK)


# ---------------------------------------------------------------------------
# Whisper
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clear_model_cache():
    """Ensure module-level model cache is cleared before each test."""
    original = whisper_module._model_cache
    whisper_module._model_cache = None
    yield
    whisper_module._model_cache = original


@pytest.fixture
def mock_whisper_model():
    model = MagicMock()
    segments = [SimpleNamespace(text=" Se identifica "), SimpleNamespace(text="apéndice. ")]
    model.transcribe.return_value = (iter(segments), SimpleNamespace(language="es"))
    return model


class TestWhisperTranscriber:
    async def test_joins_segments(self, mock_whisper_model):
        transcriber = WhisperTranscriber(language="es")
        with patch.object(WhisperTranscriber, "_get_model", return_value=mock_whisper_model):
            text = await transcriber.transcribe(CHUNK)

        assert text == "Se identifica apéndice."
        args, kwargs = mock_whisper_model.transcribe.call_args
        assert isinstance(args[0], io.BytesIO)
        assert args[0].getvalue() == CHUNK.data
        assert kwargs["language"] == "es"
        assert kwargs["vad_filter"] is True

    async def test_failure_is_classified(self, mock_whisper_model):
        mock_whisper_model.transcribe.side_effect = RuntimeError("invalid data")
        transcriber = WhisperTranscriber()
        with patch.object(WhisperTranscriber, "_get_model", return_value=mock_whisper_model):
            with pytest.raises(TranscriptionError, match="invalid data"):
                await transcriber.transcribe(CHUNK)

    def test_model_is_loaded_once(self):
        with patch.object(whisper_module, "WhisperModel") as mock_cls:
            first = WhisperTranscriber(model_size="tiny")._get_model()
            second = WhisperTranscriber(model_size="tiny")._get_model()

        assert first is second
        mock_cls.assert_called_once_with("tiny", device="cpu", compute_type="int8")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestFactory:
    def test_webhook(self):
        assert isinstance(create_transcriber("webhook"), WebhookTranscriber)

    @pytest.mark.parametrize("provider", ["whisper", "local"])
    def test_whisper(self, provider):
        assert isinstance(create_transcriber(provider), WhisperTranscriber)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown transcription provider"):
            create_transcriber("nope")
