"""Gate state models."""

from enum import StrEnum

from pydantic import BaseModel


class GatePhase(StrEnum):
    """Session gate lifecycle states."""

    IDLE = "idle"
    RUNNING = "running"
    LOCKED = "locked"


class OverridePhase(StrEnum):
    """Parental override lifecycle states."""

    LOCKED = "locked"
    UNLOCKED = "unlocked"


class GateState(BaseModel):
    """Transient state of one monitoring session."""

    phase: GatePhase = GatePhase.IDLE
    elapsed_seconds: int = 0
    allowance_seconds: int = 0
    active_exercise_index: int = 0
    completed_exercises: int = 0
    paused: bool = False
    content_visible: bool = True
    override_required: bool = False

    @property
    def remaining_seconds(self) -> int:
        return max(0, self.allowance_seconds - self.elapsed_seconds)
