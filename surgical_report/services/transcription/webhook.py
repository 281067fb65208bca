"""Transcription through an external webhook.

Posts ``{"audio": <base64>, "mimeType": <type>}`` and expects ``{"text": ...}``
back. Retries are never automatic: a failed chunk is reported and skipped
by the queue.
"""

import base64
import logging

import httpx

from surgical_report.core.config import get_settings
from surgical_report.core.exceptions import TranscriptionError
from surgical_report.core.models import AudioChunk
from surgical_report.services.transcription.base import BaseTranscriber

logger = logging.getLogger(__name__)


class WebhookTranscriber(BaseTranscriber):
    """HTTP transcription provider.

    Args:
        url: Webhook endpoint (defaults to ``transcription_webhook_url``).
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._url = url or settings.transcription_webhook_url
        self._timeout = timeout if timeout is not None else settings.transcription_timeout_seconds
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=transport)

    async def transcribe(self, chunk: AudioChunk) -> str:
        body = {
            "audio": base64.b64encode(chunk.data).decode("ascii"),
            "mimeType": chunk.mime_type,
        }
        try:
            resp = await self._client.post(self._url, json=body)
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("Transcription webhook timeout for chunk %s", chunk.sequence)
            raise TranscriptionError(
                detail=f"Transcription timed out after {self._timeout:g}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise TranscriptionError(
                detail=f"Transcription service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TranscriptionError(detail=f"Transcription service unreachable: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise TranscriptionError(detail="Transcription service returned invalid JSON") from exc

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise TranscriptionError(detail="Transcription response has no 'text' field")
        return text.strip()

    async def aclose(self) -> None:
        await self._client.aclose()
