"""Multiple-choice spelling quiz."""

from typing import Any

from kids_gate.exercises.base import ExerciseEngine
from kids_gate.models.content import QuizContent
from kids_gate.models.profile import ExerciseType


class QuizEngine(ExerciseEngine):
    """Offers the correct answer mixed with the wrong ones.

    A wrong pick keeps the question and reshuffles the displayed choices.
    """

    exercise_type = ExerciseType.QUIZ

    def _on_new_item(self, item: QuizContent) -> None:
        self._displayed = item.wrongAnswers + [item.correctAnswer]
        self._rng.shuffle(self._displayed)

    def _on_mistake(self, item: QuizContent) -> None:
        self._rng.shuffle(self._displayed)

    def _choices(self, item: QuizContent) -> list[str]:
        return list(self._displayed)

    def _check(self, item: QuizContent, answer: Any) -> bool | None:
        return answer == item.correctAnswer

    def _prompt_text(self, item: QuizContent) -> str:
        return item.text

    def _summary(self, item: QuizContent) -> str:
        return f"word: {item.correctAnswer}"
