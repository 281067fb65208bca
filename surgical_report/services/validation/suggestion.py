"""Procedure suggestions from the operative findings.

Two providers share one interface:

- ``WebhookSuggester`` posts sanitized findings and scheduled procedures to
  an external webhook returning ``{"procedimientos_sugeridos": [...]}``.
- ``LLMSuggester`` asks the configured LLM directly, with every interpolated
  value passed through ``sanitize_for_ai_prompt``.
"""

import json
import logging
from abc import ABC, abstractmethod

import httpx
from pydantic import ValidationError as PydanticValidationError

from surgical_report.core.config import get_settings
from surgical_report.core.exceptions import SuggestionError
from surgical_report.core.models import (
    ScheduledProcedurePayload,
    SuggestedProcedure,
    SuggestionResponse,
)
from surgical_report.core.utils import (
    sanitize_for_ai_prompt,
    sanitize_medical_text,
    strip_code_fences,
)
from surgical_report.services.llm.base import BaseLLM

logger = logging.getLogger(__name__)


def parse_suggestions(data: object) -> list[SuggestedProcedure]:
    """Validate a decoded suggestion response."""
    if isinstance(data, list) and len(data) == 1:
        data = data[0]
    try:
        return SuggestionResponse.model_validate(data).procedimientos_sugeridos
    except PydanticValidationError as exc:
        raise SuggestionError(detail="Suggestion response does not match the expected schema") from exc


class BaseSuggester(ABC):
    """Interface that every suggestion provider must implement."""

    @abstractmethod
    async def suggest(
        self,
        hallazgos: str,
        scheduled: tuple[ScheduledProcedurePayload, ...],
    ) -> list[SuggestedProcedure]:
        """Propose procedures for the given findings.

        Raises:
            SuggestionError: If the provider fails or answers garbage.
        """

    async def aclose(self) -> None:
        """Release provider resources."""


class WebhookSuggester(BaseSuggester):
    """Suggestion provider backed by an HTTP webhook."""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._url = url or settings.suggestion_webhook_url
        self._timeout = timeout if timeout is not None else settings.webhook_timeout_seconds
        self._max_length = settings.field_max_length
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=transport)

    async def suggest(self, hallazgos, scheduled):
        body = {
            "hallazgos": sanitize_medical_text(hallazgos, self._max_length),
            "procedimientos_programados": [p.model_dump() for p in scheduled],
        }
        try:
            resp = await self._client.post(self._url, json=body)
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise SuggestionError(
                detail=f"Suggestion request exceeded the maximum wait time ({self._timeout:g}s)"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise SuggestionError(
                detail=f"Suggestion service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SuggestionError(detail=f"Suggestion service unreachable: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise SuggestionError(detail="Suggestion service returned invalid JSON") from exc
        return parse_suggestions(data)

    async def aclose(self) -> None:
        await self._client.aclose()


def _build_prompt(hallazgos: str, scheduled: tuple[ScheduledProcedurePayload, ...]) -> str:
    """Build the suggestion prompt from sanitized inputs."""
    findings = sanitize_for_ai_prompt(hallazgos, max_length=1000)
    if scheduled:
        scheduled_lines = "\n".join(
            f"- {sanitize_for_ai_prompt(p.codigo, 50)}: "
            f"{sanitize_for_ai_prompt(p.descripcion, 200)} "
            f"(vía {sanitize_for_ai_prompt(p.via, 100)})"
            for p in scheduled
        )
    else:
        scheduled_lines = "- Ninguno"
    return (
        "Basándote en la siguiente información quirúrgica:\n\n"
        f"Hallazgos operatorios: {findings}\n"
        f"Procedimientos programados:\n{scheduled_lines}\n\n"
        "Sugiere entre 3 y 5 procedimientos quirúrgicos apropiados y médicamente "
        "justificados, con código CUPS, descripción y vía de acceso "
        "(ABIERTA, LAPAROSCOPICA, ENDOSCOPICA, etc.).\n\n"
        'Responde con esta estructura exacta: {"procedimientos_sugeridos": '
        '[{"codigo": "...", "descripcion": "...", "via": "..."}]}'
    )


class LLMSuggester(BaseSuggester):
    """Suggestion provider that prompts an LLM directly."""

    def __init__(self, llm: BaseLLM) -> None:
        self._llm = llm

    async def suggest(self, hallazgos, scheduled):
        prompt = _build_prompt(hallazgos, scheduled)
        try:
            raw = await self._llm.generate_json(prompt)
        except (ConnectionError, TimeoutError, RuntimeError) as exc:
            logger.warning("LLM suggestion failed: %s", exc)
            raise SuggestionError(detail=f"Error al comunicarse con el servicio de IA: {exc}") from exc

        try:
            data = json.loads(strip_code_fences(raw))
        except json.JSONDecodeError as exc:
            logger.warning("LLM returned non-JSON suggestion output: %.200s", raw)
            raise SuggestionError(detail="Error al procesar la respuesta del servicio de IA") from exc
        return parse_suggestions(data)


def create_suggester(provider: str | None = None, **kwargs) -> BaseSuggester:
    """
    Factory function to create a suggestion provider.

    Args:
        provider: "webhook" or "llm"; defaults to ``suggestion_provider``
        **kwargs: Provider-specific configuration

    Raises:
        ValueError: If provider is unknown
    """
    provider = provider or get_settings().suggestion_provider
    if provider == "webhook":
        return WebhookSuggester(**kwargs)
    if provider == "llm":
        from surgical_report.services.llm import create_llm

        return LLMSuggester(create_llm(**kwargs))
    raise ValueError(f"Unknown suggestion provider: {provider}")
