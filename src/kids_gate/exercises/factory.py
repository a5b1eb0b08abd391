"""Selects the engine class for an exercise type."""

import random
from collections.abc import Sequence
from typing import Any

from kids_gate.exercises.arithmetic import ArithmeticEngine
from kids_gate.exercises.base import ExerciseEngine
from kids_gate.exercises.quiz import QuizEngine
from kids_gate.exercises.reading import ReadingEngine
from kids_gate.exercises.spelling import SpellingEngine
from kids_gate.models.profile import ExerciseType

ENGINE_CLASSES: dict[ExerciseType, type[ExerciseEngine]] = {
    ExerciseType.ARITHMETIC: ArithmeticEngine,
    ExerciseType.QUIZ: QuizEngine,
    ExerciseType.SPELLING: SpellingEngine,
    ExerciseType.READING: ReadingEngine,
}


def create_engine(
    exercise_type: ExerciseType,
    pool: Sequence[Any],
    target_count: int,
    profile_name: str,
    rng: random.Random | None = None,
    **options: Any,
) -> ExerciseEngine:
    """Instantiate the engine for ``exercise_type``.

    Extra ``options`` are passed to engines that accept them (the reading
    engine takes ``shuffle`` and ``clock``).
    """
    engine_cls = ENGINE_CLASSES[exercise_type]
    if engine_cls is ReadingEngine:
        return ReadingEngine(pool, target_count, profile_name, rng=rng, **options)
    return engine_cls(pool, target_count, profile_name, rng=rng)
