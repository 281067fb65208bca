"""
Surgical report exception hierarchy.

All application-specific exceptions inherit from SurgicalReportError,
enabling centralized error handling in the API middleware layer. None of
them is fatal: each one maps to a user-visible notice and a safe state.
"""

from datetime import UTC, datetime


class SurgicalReportError(Exception):
    """Base exception for all surgical report errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "SURGICAL_REPORT_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class ReportNotFoundError(SurgicalReportError):
    """Raised when a report session ID does not exist."""

    def __init__(self, report_id: str) -> None:
        super().__init__(
            detail=f"Report not found: {report_id}",
            code="REPORT_NOT_FOUND",
            status_code=404,
        )


class FieldNotFoundError(SurgicalReportError):
    """Raised when a form field ID does not exist in the report."""

    def __init__(self, field_id: str) -> None:
        super().__init__(
            detail=f"Field not found: {field_id}",
            code="FIELD_NOT_FOUND",
            status_code=404,
        )


class NoActiveFieldError(SurgicalReportError):
    """Raised when dictated text has no focused field to land in."""

    def __init__(self) -> None:
        super().__init__(
            detail="Click inside a text area before dictating",
            code="NO_ACTIVE_FIELD",
            status_code=409,
        )


class RecognitionError(SurgicalReportError):
    """Raised when the speech recognizer reports a device or permission problem."""

    def __init__(self, reason: str = "speech-error") -> None:
        self.reason = reason
        super().__init__(
            detail=f"Speech recognition error: {reason}",
            code="RECOGNITION_ERROR",
            status_code=500,
        )


class TranscriptionError(SurgicalReportError):
    """Raised when STT processing of one audio chunk fails."""

    def __init__(self, detail: str = "Transcription failed") -> None:
        super().__init__(
            detail=detail,
            code="TRANSCRIPTION_ERROR",
            status_code=500,
        )


class ValidationError(SurgicalReportError):
    """Base for failures of the remote validation webhook."""


class ValidationTimeoutError(ValidationError):
    """Raised when the validation request exceeds its time budget."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            detail=f"Validation request exceeded the maximum wait time ({timeout:g}s)",
            code="VALIDATION_TIMEOUT",
            status_code=504,
        )


class ValidationNetworkError(ValidationError):
    """Raised when the validation webhook cannot be reached or answers non-2xx."""

    def __init__(self, detail: str = "Validation service unreachable") -> None:
        super().__init__(
            detail=detail,
            code="VALIDATION_NETWORK_ERROR",
            status_code=502,
        )


class ValidationServiceError(ValidationError):
    """Raised when the validation webhook answers with an unusable body."""

    def __init__(self, detail: str = "Validation service returned an invalid response") -> None:
        super().__init__(
            detail=detail,
            code="VALIDATION_SERVICE_ERROR",
            status_code=502,
        )


class SuggestionError(SurgicalReportError):
    """Raised when procedure suggestions cannot be obtained."""

    def __init__(self, detail: str = "Procedure suggestion failed") -> None:
        super().__init__(detail=detail, code="SUGGESTION_ERROR", status_code=502)


class InvalidProcedureDataError(SurgicalReportError):
    """Raised when a procedure fails local schema validation."""

    def __init__(self, detail: str = "Invalid procedure data") -> None:
        super().__init__(
            detail=detail,
            code="INVALID_PROCEDURE_DATA",
            status_code=422,
        )


class SubmissionConflictError(SurgicalReportError):
    """Raised when navigation is attempted while the gate does not allow it."""

    def __init__(self, detail: str = "Step navigation is not allowed right now") -> None:
        super().__init__(
            detail=detail,
            code="SUBMISSION_CONFLICT",
            status_code=409,
        )
