"""Parental override gate guarding the settings screens, and the attention alert."""

import inspect
import random
from collections.abc import Awaitable, Callable

import structlog

from kids_gate.gate.timers import DelayedCall
from kids_gate.models.gate import OverridePhase

logger = structlog.get_logger()

WRONG_ANSWER = "Wrong answer."
AUTH_FAILED = "Authentication failed."
AUTH_UNAVAILABLE = "Biometric authentication unavailable."


class ParentalOverrideGate:
    """Single-shot lock: once unlocked it stays unlocked until re-armed.

    Two ways in: the device's own biometric/passcode check (run on the
    tablet, result reported here) or a multiplication challenge. There is
    no retry limit; a wrong answer keeps the same problem.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()
        self.phase = OverridePhase.LOCKED
        self.response = ""
        self.auth_error: str | None = None
        self.num1 = 0
        self.num2 = 0
        self._generate_problem()

    @property
    def is_unlocked(self) -> bool:
        return self.phase == OverridePhase.UNLOCKED

    @property
    def problem_text(self) -> str:
        return f"{self.num1} × {self.num2} = ?"

    def _generate_problem(self) -> None:
        self.num1 = self._rng.randint(12, 19)
        self.num2 = self._rng.randint(3, 9)

    def submit_answer(self, answer: str) -> bool:
        if self.is_unlocked:
            return True
        self.response = answer
        try:
            value = int(answer.strip())
        except ValueError:
            value = None
        if value == self.num1 * self.num2:
            self._unlock("challenge")
            return True
        self.auth_error = WRONG_ANSWER
        self.response = ""
        logger.info("override_challenge_failed")
        return False

    def report_device_auth(self, success: bool, available: bool = True) -> bool:
        """Apply the outcome of the device-native authentication prompt."""
        if self.is_unlocked:
            return True
        if not available:
            self.auth_error = AUTH_UNAVAILABLE
            return False
        if not success:
            self.auth_error = AUTH_FAILED
            logger.info("override_device_auth_failed")
            return False
        self._unlock("device")
        return True

    def rearm(self) -> None:
        """Lock again with a new problem (re-entering the protected area)."""
        self.phase = OverridePhase.LOCKED
        self.response = ""
        self.auth_error = None
        self._generate_problem()

    def snapshot(self) -> dict:
        return {
            "phase": self.phase.value,
            "problem": None if self.is_unlocked else self.problem_text,
            "response": self.response,
            "error": self.auth_error,
        }

    def _unlock(self, method: str) -> None:
        self.phase = OverridePhase.UNLOCKED
        self.auth_error = None
        self.response = ""
        logger.info("override_unlocked", method=method)


class AttentionAlert:
    """Full-screen "come here" alert shown after a short delay, then auto-dismissed.

    Args:
        on_change: Called with the new visibility (sync or async).
        delay_seconds: Wait before showing, so the settings sheet can close.
        duration_seconds: How long the alert stays up.
    """

    def __init__(
        self,
        on_change: Callable[[bool], Awaitable[None] | None] | None = None,
        delay_seconds: float = 0.4,
        duration_seconds: float = 5.0,
    ):
        self._on_change = on_change
        self.delay_seconds = delay_seconds
        self.duration_seconds = duration_seconds
        self.visible = False
        self._show_call: DelayedCall | None = None
        self._hide_call: DelayedCall | None = None

    def trigger(self) -> None:
        self._cancel_timers()
        self._show_call = DelayedCall(self.delay_seconds, self._show, name="alert_show").start()

    async def cancel(self) -> None:
        self._cancel_timers()
        if self.visible:
            await self._set_visible(False)

    async def _show(self) -> None:
        await self._set_visible(True)
        self._hide_call = DelayedCall(
            self.duration_seconds, self._hide, name="alert_hide"
        ).start()

    async def _hide(self) -> None:
        await self._set_visible(False)

    async def _set_visible(self, visible: bool) -> None:
        self.visible = visible
        logger.info("attention_alert", visible=visible)
        if self._on_change is not None:
            result = self._on_change(visible)
            if inspect.isawaitable(result):
                await result

    def _cancel_timers(self) -> None:
        for call in (self._show_call, self._hide_call):
            if call is not None:
                call.cancel()
        self._show_call = None
        self._hide_call = None
