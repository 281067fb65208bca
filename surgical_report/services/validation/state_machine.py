"""Submit -> validate -> gate flow of a form step.

States::

    idle --submit--> submitting
    submitting --no alerts--------------------> accepted       (advance now)
    submitting --alerts, below lock severity--> alerted_open   (advance now)
    submitting --alerts, at/above lock sev.---> alerted_locked (countdown)
    alerted_locked --countdown reaches 0------> alerted_open   (proceed allowed)
    submitting --error------------------------> idle           (error notice)
    any (except an active lock) --dismiss-----> idle

A new verdict always replaces the previous one. Once ``close()`` has been
called, a submission still in flight completes but changes nothing.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from surgical_report.core.exceptions import (
    SubmissionConflictError,
    ValidationError,
    ValidationTimeoutError,
)
from surgical_report.core.models import (
    FormStepPayload,
    GateState,
    Notification,
    NotificationLevel,
    Severity,
    SubmissionResponse,
    SubmissionState,
    ValidationVerdict,
)
from surgical_report.services.dictation.notifications import NotifyCallback
from surgical_report.services.validation.countdown import CountdownTimer, SleepFunc
from surgical_report.services.validation.gateway import ValidationGateway

logger = logging.getLogger(__name__)

AdvanceCallback = Callable[[], Awaitable[None]]
ChangeCallback = Callable[[SubmissionResponse], Awaitable[None]]


def _error_notice(exc: ValidationError) -> Notification:
    title = (
        "Tiempo de espera agotado"
        if isinstance(exc, ValidationTimeoutError)
        else "Error al validar la descripción"
    )
    return Notification(
        level=NotificationLevel.error,
        title=title,
        description=exc.detail,
        code=exc.code,
    )


class SubmissionStateMachine:
    """Drives one form step's validation gate.

    Args:
        gateway: Remote validator.
        on_advance: Async callback moving the report to the next step.
        notify: Async callback for user-visible notices.
        on_change: Async callback receiving a snapshot after every transition.
        lock_seconds: Countdown length when a verdict locks the gate.
        lock_severity: Lowest global severity that locks the gate.
        tick_interval: Seconds per countdown tick.
        sleep: Sleep coroutine for the countdown (tests inject a manual one).
    """

    def __init__(
        self,
        gateway: ValidationGateway,
        on_advance: AdvanceCallback,
        notify: NotifyCallback,
        on_change: ChangeCallback | None = None,
        lock_seconds: int = 5,
        lock_severity: Severity = Severity.alta,
        tick_interval: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._on_advance = on_advance
        self._notify = notify
        self._on_change = on_change
        self._lock_seconds = lock_seconds
        self._lock_severity = Severity(lock_severity)
        self._tick_interval = tick_interval
        self._sleep = sleep
        self._state = SubmissionState.idle
        self._verdict: ValidationVerdict | None = None
        self._remaining = 0
        self._countdown: CountdownTimer | None = None
        self._closed = False

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def verdict(self) -> ValidationVerdict | None:
        return self._verdict

    @property
    def countdown(self) -> CountdownTimer | None:
        return self._countdown

    @property
    def gate(self) -> GateState:
        locked = self._state == SubmissionState.alerted_locked
        return GateState(open=not locked, remaining_seconds=self._remaining if locked else 0)

    @property
    def can_submit(self) -> bool:
        return not self._closed and self._state not in (
            SubmissionState.submitting,
            SubmissionState.alerted_locked,
        )

    def snapshot(self) -> SubmissionResponse:
        return SubmissionResponse(state=self._state, gate=self.gate, verdict=self._verdict)

    def locks(self, severity: Severity) -> bool:
        """Whether a verdict of ``severity`` locks the gate."""
        return severity.rank >= self._lock_severity.rank

    async def submit(self, payload: FormStepPayload) -> SubmissionState:
        """Validate ``payload`` and move to the resulting state.

        Raises:
            SubmissionConflictError: While submitting, locked or closed.
        """
        if self._closed:
            raise SubmissionConflictError("The report has been closed")
        if self._state == SubmissionState.submitting:
            raise SubmissionConflictError("A validation request is already in progress")
        if self._state == SubmissionState.alerted_locked:
            raise SubmissionConflictError(
                f"Navigation is locked for {self._remaining} more seconds"
            )

        self._cancel_countdown()
        self._verdict = None
        self._remaining = 0
        await self._transition(SubmissionState.submitting)

        try:
            verdict = await self._gateway.submit(payload)
        except ValidationError as exc:
            return await self._fail(exc)
        except Exception:
            logger.exception("Unexpected failure while validating the report")
            return await self._fail(ValidationError(detail="Unexpected validation failure"))

        if self._closed:
            logger.debug("Discarding validation verdict for a closed report")
            return self._state

        self._verdict = verdict
        if not verdict.has_alerts:
            await self._transition(SubmissionState.accepted)
            await self._on_advance()
        elif self.locks(verdict.global_severity):
            self._remaining = self._lock_seconds
            await self._transition(SubmissionState.alerted_locked)
            self._start_countdown()
        else:
            await self._transition(SubmissionState.alerted_open)
            await self._on_advance()
        return self._state

    async def proceed(self) -> None:
        """Advance after an alerted verdict once the gate is open.

        Raises:
            SubmissionConflictError: If the gate is locked or no verdict allows it.
        """
        if self._state not in (SubmissionState.accepted, SubmissionState.alerted_open):
            raise SubmissionConflictError(
                f"Cannot proceed while the validation gate is {self._state}"
            )
        await self._on_advance()

    async def dismiss(self) -> bool:
        """Clear the alerts and return to idle.

        Returns:
            False if an active countdown lock prevented the dismissal.
        """
        if self._state == SubmissionState.alerted_locked:
            return False
        if self._state == SubmissionState.submitting:
            return False
        self._verdict = None
        self._remaining = 0
        await self._transition(SubmissionState.idle)
        return True

    def close(self) -> None:
        """Cancel the countdown and ignore every later outcome."""
        self._closed = True
        self._cancel_countdown()

    async def _fail(self, exc: ValidationError) -> SubmissionState:
        if self._closed:
            return self._state
        logger.warning("Validation failed: %s (%s)", exc.detail, exc.code)
        await self._transition(SubmissionState.idle)
        await self._notify(_error_notice(exc))
        return self._state

    async def _transition(self, state: SubmissionState) -> None:
        logger.debug("Submission state %s -> %s", self._state, state)
        self._state = state
        if self._on_change is not None:
            await self._on_change(self.snapshot())

    def _start_countdown(self) -> None:
        self._countdown = CountdownTimer(
            self._lock_seconds,
            on_tick=self._on_tick,
            on_complete=self._on_unlock,
            interval=self._tick_interval,
            sleep=self._sleep,
        )
        self._countdown.start()

    def _cancel_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    async def _on_tick(self, remaining: int) -> None:
        self._remaining = remaining
        if remaining > 0 and self._on_change is not None:
            await self._on_change(self.snapshot())

    async def _on_unlock(self) -> None:
        self._remaining = 0
        self._countdown = None
        await self._transition(SubmissionState.alerted_open)
