"""Word correction exercise: the child retypes a misspelled word correctly."""

from typing import Any

from kids_gate.exercises.base import ExerciseEngine
from kids_gate.models.content import WriteContent
from kids_gate.models.profile import ExerciseType


class SpellingEngine(ExerciseEngine):
    exercise_type = ExerciseType.SPELLING

    def _check(self, item: WriteContent, answer: Any) -> bool | None:
        entry = str(answer or "").strip()
        if not entry:
            return None
        return entry.casefold() == item.correct.strip().casefold()

    def _prompt_text(self, item: WriteContent) -> str:
        return item.wrong.upper()

    def _summary(self, item: WriteContent) -> str:
        return f"word: {item.correct}"
