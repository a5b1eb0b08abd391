"""Mental multiplication exercise."""

from typing import Any

from kids_gate.exercises.base import ExerciseEngine
from kids_gate.models.content import MathContent
from kids_gate.models.profile import ExerciseType


class ArithmeticEngine(ExerciseEngine):
    """Asks ``a × b`` and expects the product typed on a numeric pad.

    Non-numeric input is ignored rather than counted as a mistake.
    """

    exercise_type = ExerciseType.ARITHMETIC

    def _check(self, item: MathContent, answer: Any) -> bool | None:
        try:
            value = int(str(answer).strip())
        except ValueError:
            return None
        return value == item.product

    def _prompt_text(self, item: MathContent) -> str:
        return f"{item.num1} × {item.num2} = ?"

    def _summary(self, item: MathContent) -> str:
        return f"{item.num1} × {item.num2} = {item.product}"
