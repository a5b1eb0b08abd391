"""Screen-time gate: counts foreground seconds and locks behind an exercise."""

from collections.abc import Callable
from typing import Any

import structlog

from kids_gate.exceptions import InvalidTransitionError
from kids_gate.exercises.base import ExerciseEngine, SubmitOutcome
from kids_gate.models.gate import GatePhase, GateState
from kids_gate.models.history import SessionRecord
from kids_gate.models.profile import ExerciseSlot, ProfileConfiguration

logger = structlog.get_logger()

EngineFactory = Callable[[ExerciseSlot], ExerciseEngine]
RecordCallback = Callable[[SessionRecord], None]
ChangeCallback = Callable[[GateState], None]


class SessionGate:
    """State machine for one monitoring session (Idle, Running, Locked).

    The gate is synchronous. ``tick()`` is called once per second by the
    owner while monitored content is on screen. On expiry the gate locks
    and asks ``engine_factory`` for the engine of the next enabled slot;
    when that engine finalizes, its records go to ``on_record`` and the gate
    runs again with a fresh allowance.

    Args:
        profile_name: Profile being monitored.
        engine_factory: Builds the engine for a slot at lock time.
        on_record: Receives every session record emitted on unlock.
        on_change: Receives the state after each transition or tick.
        require_override_after_cycles: Keep the gate locked once the
            configured number of cycles is done, until a parent releases it.
    """

    def __init__(
        self,
        profile_name: str,
        engine_factory: EngineFactory,
        on_record: RecordCallback | None = None,
        on_change: ChangeCallback | None = None,
        require_override_after_cycles: bool = False,
    ):
        self.profile_name = profile_name
        self._engine_factory = engine_factory
        self._on_record = on_record
        self._on_change = on_change
        self._require_override = require_override_after_cycles
        self._state: GateState | None = None
        self._configuration: ProfileConfiguration | None = None
        self._slots: list[ExerciseSlot] = []
        self.engine: ExerciseEngine | None = None

    @property
    def state(self) -> GateState:
        if self._state is None:
            return GateState()
        return self._state

    @property
    def phase(self) -> GatePhase:
        return self.state.phase

    @property
    def enabled_slots(self) -> list[ExerciseSlot]:
        return list(self._slots)

    @property
    def cycles_completed(self) -> int:
        if not self._slots:
            return 0
        return self.state.completed_exercises // len(self._slots)

    @property
    def cycle_exhausted(self) -> bool:
        if self._configuration is None or not self._slots:
            return False
        return self.cycles_completed >= self._configuration.cycle_count

    # Transitions

    def activate(self, configuration: ProfileConfiguration) -> GateState:
        """Idle -> Running, or straight to Locked when no viewing is allowed."""
        if self._state is not None:
            raise InvalidTransitionError(f"gate already {self._state.phase}")
        self._configuration = configuration
        self._slots = configuration.enabled_slots
        self._state = GateState(
            phase=GatePhase.RUNNING,
            allowance_seconds=configuration.allowance_seconds,
        )
        logger.info(
            "gate_activated",
            profile=self.profile_name,
            allowance_seconds=configuration.allowance_seconds,
            enabled_slots=len(self._slots),
        )
        if configuration.allowance_seconds == 0 or not self._slots:
            self._lock("no_free_viewing")
        self._notify()
        return self.state

    def tick(self) -> GateState:
        """Advance the elapsed counter by one second when it is counting."""
        state = self._state
        if (
            state is None
            or state.phase != GatePhase.RUNNING
            or state.paused
            or not state.content_visible
        ):
            return self.state
        state.elapsed_seconds += 1
        if state.elapsed_seconds >= state.allowance_seconds:
            self._lock("allowance_expired")
        self._notify()
        return state

    def submit(self, answer: Any) -> SubmitOutcome:
        """Forward an answer to the active exercise."""
        if self.phase != GatePhase.LOCKED or self.engine is None:
            raise InvalidTransitionError("no exercise is running")
        outcome = self.engine.submit(answer)
        if outcome == SubmitOutcome.COMPLETED:
            self._complete_exercise()
        return outcome

    def release_with_override(self) -> GateState:
        """Parent release after the configured cycles are exhausted."""
        state = self._state
        if state is None or not state.override_required:
            raise InvalidTransitionError("gate is not waiting for an override")
        state.override_required = False
        state.completed_exercises = 0
        state.elapsed_seconds = 0
        logger.info("gate_released_by_override", profile=self.profile_name)
        self._unlock()
        return state

    def deactivate(self) -> GateState:
        """Any phase -> Idle. An unfinished exercise is dropped without a record."""
        if self._state is None:
            return self.state
        if self.engine is not None and not self.engine.is_complete():
            logger.info(
                "exercise_abandoned",
                profile=self.profile_name,
                exercise_type=self.engine.exercise_type.value,
            )
        logger.info(
            "gate_deactivated",
            profile=self.profile_name,
            elapsed_seconds=self._state.elapsed_seconds,
        )
        self._state = None
        self._configuration = None
        self._slots = []
        self.engine = None
        self._notify()
        return self.state

    def set_content_visible(self, visible: bool) -> None:
        if self._state is not None:
            self._state.content_visible = visible

    def pause(self) -> None:
        if self._state is not None:
            self._state.paused = True

    def resume(self) -> None:
        if self._state is not None:
            self._state.paused = False

    def apply_configuration(self, configuration: ProfileConfiguration) -> GateState:
        """Take a configuration saved while the session is active."""
        state = self._state
        if state is None:
            return self.state
        self._configuration = configuration
        self._slots = configuration.enabled_slots
        state.allowance_seconds = configuration.allowance_seconds
        state.active_exercise_index = (
            state.active_exercise_index % len(self._slots) if self._slots else 0
        )
        if state.phase == GatePhase.RUNNING:
            if not self._slots or state.elapsed_seconds >= state.allowance_seconds:
                self._lock("reconfigured")
        elif not self._slots:
            self.engine = None
            logger.warning("gate_locked_without_exercise", profile=self.profile_name)
        elif self.engine is None and not state.override_required:
            self._lock("reconfigured")
        self._notify()
        return state

    # Internals

    def _lock(self, reason: str) -> None:
        state = self._state
        state.phase = GatePhase.LOCKED
        self.engine = None
        if not self._slots:
            logger.warning(
                "gate_locked_without_exercise", profile=self.profile_name, reason=reason
            )
            return
        slot = self._slots[state.active_exercise_index % len(self._slots)]
        self.engine = self._engine_factory(slot)
        logger.info(
            "gate_locked",
            profile=self.profile_name,
            reason=reason,
            elapsed_seconds=state.elapsed_seconds,
            exercise_type=slot.exercise_type.value,
            target_count=slot.target_count,
        )

    def _complete_exercise(self) -> None:
        state = self._state
        for record in self.engine.session_records():
            if self._on_record is not None:
                self._on_record(record)
        state.completed_exercises += 1
        state.active_exercise_index = (state.active_exercise_index + 1) % len(self._slots)
        state.elapsed_seconds = 0
        self.engine = None
        if self.cycle_exhausted:
            logger.info(
                "gate_cycles_exhausted",
                profile=self.profile_name,
                cycles=self.cycles_completed,
            )
            if self._require_override:
                state.override_required = True
                self._notify()
                return
        self._unlock()

    def _unlock(self) -> None:
        state = self._state
        state.phase = GatePhase.RUNNING
        logger.info("gate_unlocked", profile=self.profile_name)
        if state.allowance_seconds == 0:
            self._lock("no_free_viewing")
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.state)
