"""Exercise content models and the built-in fallback pools."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from kids_gate.models.profile import ExerciseType


class MathContent(BaseModel):
    """A two-operand multiplication."""

    num1: int
    num2: int

    @property
    def product(self) -> int:
        return self.num1 * self.num2


class QuizContent(BaseModel):
    """A multiple-choice question."""

    text: str
    correctAnswer: str
    wrongAnswers: list[str] = Field(default_factory=list)


class WriteContent(BaseModel):
    """A misspelled word and its correction."""

    correct: str
    wrong: str


class LectureContent(BaseModel):
    """A text to read aloud."""

    text: str


ExerciseContent = MathContent | QuizContent | WriteContent | LectureContent

CONTENT_MODELS: dict[ExerciseType, type[BaseModel]] = {
    ExerciseType.ARITHMETIC: MathContent,
    ExerciseType.QUIZ: QuizContent,
    ExerciseType.SPELLING: WriteContent,
    ExerciseType.READING: LectureContent,
}


def parse_content(exercise_type: ExerciseType, data: dict[str, Any]) -> ExerciseContent:
    """Validate a raw content payload against the model for its type."""
    return CONTENT_MODELS[exercise_type].model_validate(data)


class LibraryExercise(BaseModel):
    """A row of the exercise library as seen by the admin screens."""

    id: int
    type: ExerciseType
    destinataire: str
    content: dict[str, Any]
    created_at: datetime | None = None

    def parsed_content(self) -> ExerciseContent:
        return parse_content(self.type, self.content)


QUIZ_PROMPT = "Trouve la bonne orthographe :"

FALLBACK_POOLS: dict[ExerciseType, list[ExerciseContent]] = {
    ExerciseType.ARITHMETIC: [
        MathContent(num1=a, num2=b) for a in range(2, 10) for b in range(2, 10)
    ],
    ExerciseType.QUIZ: [
        QuizContent(
            text=QUIZ_PROMPT,
            correctAnswer="Mythologie",
            wrongAnswers=["Mithologie", "Mytologie", "Mythollogie"],
        ),
        QuizContent(
            text=QUIZ_PROMPT,
            correctAnswer="Aventure",
            wrongAnswers=["Avanture", "Aventurre", "Avanturre"],
        ),
        QuizContent(
            text=QUIZ_PROMPT,
            correctAnswer="Antique",
            wrongAnswers=["Antic", "Antike", "Antyque"],
        ),
    ],
    ExerciseType.SPELLING: [
        WriteContent(correct="MYTHOLOGIE", wrong="MITHOLOGIE"),
        WriteContent(correct="AVENTURE", wrong="AVANTURE"),
        WriteContent(correct="ANTIQUE", wrong="ANTIC"),
    ],
    ExerciseType.READING: [
        LectureContent(text="Le petit chat dort au soleil sur le rebord de la fenêtre."),
        LectureContent(text="Chaque matin, Léo arrose les fleurs du jardin avec sa grand-mère."),
    ],
}


def fallback_pool(exercise_type: ExerciseType) -> list[ExerciseContent]:
    """Return a copy of the built-in pool for an exercise type."""
    return list(FALLBACK_POOLS[exercise_type])
