"""Profile configuration models: allowance, break, cycles and exercise slots."""

from enum import StrEnum
from typing import Any

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()

# Display labels stored in games_config by earlier versions of the launcher
LEGACY_TYPE_LABELS: dict[str, str] = {
    "Mathématiques": "math",
    "Orthographe": "quiz",
    "Écriture": "write",
    "Lecture": "lecture",
}


class ExerciseType(StrEnum):
    """Exercise variants, valued by their backend type code."""

    ARITHMETIC = "math"
    QUIZ = "quiz"
    SPELLING = "write"
    READING = "lecture"

    @classmethod
    def _missing_(cls, value: object) -> "ExerciseType | None":
        if isinstance(value, str):
            code = LEGACY_TYPE_LABELS.get(value, value.strip().lower())
            for member in cls:
                if member.value == code:
                    return member
        return None

    @property
    def label(self) -> str:
        return {
            ExerciseType.ARITHMETIC: "Mental arithmetic",
            ExerciseType.QUIZ: "Spelling quiz",
            ExerciseType.SPELLING: "Word correction",
            ExerciseType.READING: "Reading aloud",
        }[self]


class ExerciseSlot(BaseModel):
    """One entry of the configured exercise cycle."""

    exercise_type: ExerciseType
    enabled: bool = True
    target_count: int = Field(default=1, ge=1)

    def to_record(self) -> dict[str, Any]:
        return {
            "type": self.exercise_type.value,
            "isEnabled": self.enabled,
            "questionCount": self.target_count,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "ExerciseSlot":
        return cls(
            exercise_type=ExerciseType(data["type"]),
            enabled=bool(data.get("isEnabled", True)),
            target_count=max(1, int(data.get("questionCount") or 1)),
        )


def default_slots() -> list[ExerciseSlot]:
    """Slot set used for profiles that have never been configured."""
    return [
        ExerciseSlot(exercise_type=ExerciseType.QUIZ, target_count=5),
        ExerciseSlot(exercise_type=ExerciseType.ARITHMETIC, target_count=5),
        ExerciseSlot(exercise_type=ExerciseType.SPELLING, target_count=3),
        ExerciseSlot(exercise_type=ExerciseType.READING, target_count=1),
    ]


class ProfileConfiguration(BaseModel):
    """Per-profile screen-time configuration.

    Times are held in seconds. The backend stores whole minutes, so
    ``to_record`` floors to the minute.
    """

    allowance_seconds: int = Field(default=20 * 60, ge=0)
    break_seconds: int = Field(default=10 * 60, ge=0)
    cycle_count: int = Field(default=1, ge=1)
    exercises: list[ExerciseSlot] = Field(default_factory=default_slots)

    @property
    def enabled_slots(self) -> list[ExerciseSlot]:
        return [slot for slot in self.exercises if slot.enabled]

    @property
    def can_unlock(self) -> bool:
        """Whether at least one exercise can release the gate."""
        return bool(self.enabled_slots)

    @classmethod
    def defaults(
        cls, allowance_minutes: int = 20, break_minutes: int = 10
    ) -> "ProfileConfiguration":
        return cls(
            allowance_seconds=allowance_minutes * 60,
            break_seconds=break_minutes * 60,
            cycle_count=1,
            exercises=default_slots(),
        )

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "ProfileConfiguration":
        """Build from a game_app_settings row (minutes to seconds).

        Null timer columns read as their defaults. Slots that cannot be
        parsed are logged and skipped.
        """
        exercises = []
        for item in data.get("games_config") or []:
            try:
                exercises.append(ExerciseSlot.from_record(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("configuration_slot_invalid", slot=item)
        return cls(
            allowance_seconds=int(data.get("initial_delay") or 0) * 60,
            break_seconds=int(data.get("break_delay") or 0) * 60,
            cycle_count=max(1, int(data.get("number_of_cycles") or 1)),
            exercises=exercises,
        )

    def to_record(self, profile_name: str) -> dict[str, Any]:
        """Full game_app_settings row; slots are always written as a whole list."""
        return {
            "number_of_cycles": self.cycle_count,
            "initial_delay": self.allowance_seconds // 60,
            "break_delay": self.break_seconds // 60,
            "games_config": [slot.to_record() for slot in self.exercises],
            "profile_name": profile_name,
        }
