"""Client for the remote validation webhook.

One call per user-initiated submission, bounded by a timeout (120 s by
default). There are no automatic retries: the user retries by submitting
again. Transport failures are classified so the state machine never sees
raw httpx exceptions:

- ``ValidationTimeoutError``: the request exceeded its time budget.
- ``ValidationNetworkError``: connection failure or non-2xx status.
- ``ValidationServiceError``: 2xx with a body that is not a verdict.
"""

import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from surgical_report.core.config import get_settings
from surgical_report.core.exceptions import (
    ValidationNetworkError,
    ValidationServiceError,
    ValidationTimeoutError,
)
from surgical_report.core.models import FormStepPayload, ValidationVerdict
from surgical_report.core.utils import sanitize_medical_text

logger = logging.getLogger(__name__)


def build_request_body(payload: FormStepPayload, max_length: int = 5000) -> dict:
    """Serialize a step snapshot with every free-text field sanitized."""
    return {
        "hallazgos": sanitize_medical_text(payload.hallazgos, max_length),
        "detalleQuirurgico": sanitize_medical_text(payload.detalle_quirurgico, max_length),
        "complicaciones": sanitize_medical_text(payload.complicaciones, max_length),
        "procedimientos_programados": [
            procedure.model_dump() for procedure in payload.procedimientos_programados
        ],
    }


class ValidationGateway:
    """Submits the description step to the validation webhook.

    Args:
        url: Webhook endpoint (defaults to ``validation_webhook_url``).
        timeout: Request timeout in seconds (defaults to ``webhook_timeout_seconds``).
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._url = url or settings.validation_webhook_url
        self._timeout = timeout if timeout is not None else settings.webhook_timeout_seconds
        self._max_length = settings.field_max_length
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=transport)

    @property
    def timeout(self) -> float:
        return self._timeout

    async def submit(self, payload: FormStepPayload) -> ValidationVerdict:
        """Send one snapshot and return the parsed verdict."""
        body = build_request_body(payload, self._max_length)
        logger.info(
            "Submitting description for validation (%s scheduled procedures)",
            len(body["procedimientos_programados"]),
        )
        try:
            resp = await self._client.post(self._url, json=body)
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("Validation webhook timed out after %ss", self._timeout)
            raise ValidationTimeoutError(self._timeout) from exc
        except httpx.HTTPStatusError as exc:
            logger.warning("Validation webhook returned HTTP %s", exc.response.status_code)
            raise ValidationNetworkError(
                detail=f"Validation service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Validation webhook unreachable: %s", exc)
            raise ValidationNetworkError(detail=f"Validation service unreachable: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise ValidationServiceError(detail="Validation service returned invalid JSON") from exc

        # Some webhook runners wrap the single result in a list
        if isinstance(data, list) and len(data) == 1:
            data = data[0]
        try:
            verdict = ValidationVerdict.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationServiceError(
                detail=f"Validation response does not match the expected schema: {exc.error_count()} errors"
            ) from exc

        logger.info(
            "Validation verdict: alerts=%s severity=%s",
            len(verdict.alerts),
            verdict.global_severity,
        )
        return verdict

    async def aclose(self) -> None:
        await self._client.aclose()
