"""Exercise engines that release the screen-time gate."""

from kids_gate.exercises.arithmetic import ArithmeticEngine
from kids_gate.exercises.base import (
    ExerciseEngine,
    ExerciseRun,
    Prompt,
    RunStatus,
    SubmitOutcome,
    draw_items,
)
from kids_gate.exercises.factory import create_engine
from kids_gate.exercises.quiz import QuizEngine
from kids_gate.exercises.reading import ReadingEngine, ReadingSubmission
from kids_gate.exercises.spelling import SpellingEngine

__all__ = [
    "ArithmeticEngine",
    "ExerciseEngine",
    "ExerciseRun",
    "Prompt",
    "QuizEngine",
    "ReadingEngine",
    "ReadingSubmission",
    "RunStatus",
    "SpellingEngine",
    "SubmitOutcome",
    "create_engine",
    "draw_items",
]
