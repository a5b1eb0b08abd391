"""Shared exercise engine contract and run bookkeeping."""

import random
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import StrEnum
from typing import Any, ClassVar

import structlog
from pydantic import BaseModel, Field

from kids_gate.exceptions import ExerciseNotCompleteError
from kids_gate.models.history import SessionRecord
from kids_gate.models.profile import ExerciseType

logger = structlog.get_logger()


class RunStatus(StrEnum):
    """Exercise run lifecycle states."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NO_CONTENT = "no_content"


class SubmitOutcome(StrEnum):
    """Result of one submission."""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    COMPLETED = "completed"
    INVALID = "invalid"
    NO_CONTENT = "no_content"
    ALREADY_COMPLETE = "already_complete"


class ExerciseRun(BaseModel):
    """Progress of one attempt at an exercise."""

    target_success: int
    success_count: int = 0
    mistake_count: int = 0
    items: list[Any] = Field(default_factory=list)
    current_index: int = 0
    status: RunStatus = RunStatus.IN_PROGRESS


class Prompt(BaseModel):
    """What the client shows for the current item."""

    exercise_type: ExerciseType
    text: str
    choices: list[str] = Field(default_factory=list)
    position: int
    total: int


def draw_items(
    pool: Sequence[Any],
    count: int,
    rng: random.Random,
    shuffle: bool = True,
) -> list[Any]:
    """Draw exactly ``count`` items from ``pool``.

    The pool is walked in repeated passes (shuffled per pass when
    ``shuffle`` is set), so counts larger than the pool reuse items.
    """
    if not pool or count <= 0:
        return []
    items: list[Any] = []
    while len(items) < count:
        batch = list(pool)
        if shuffle:
            rng.shuffle(batch)
        items.extend(batch)
    return items[:count]


class ExerciseEngine(ABC):
    """Drives one bounded training task until ``target_count`` successes.

    There is no failure state: wrong answers are counted and retried.
    Subclasses supply answer checking, prompt text and the record summary.

    Args:
        pool: Prompt pool for this exercise type.
        target_count: Successes required to finish.
        profile_name: Profile the resulting records belong to.
        rng: Random source (injected for deterministic tests).
    """

    exercise_type: ClassVar[ExerciseType]
    shuffle: bool = True

    def __init__(
        self,
        pool: Sequence[Any],
        target_count: int,
        profile_name: str,
        rng: random.Random | None = None,
    ):
        if target_count < 1:
            raise ValueError("target_count must be >= 1")
        self.profile_name = profile_name
        self._rng = rng or random.Random()
        items = draw_items(pool, target_count, self._rng, shuffle=self.shuffle)
        self.run = ExerciseRun(
            target_success=target_count,
            items=items,
            status=RunStatus.IN_PROGRESS if items else RunStatus.NO_CONTENT,
        )
        self._last_item: Any = None
        if items:
            self._on_new_item(items[0])
        else:
            logger.warning(
                "exercise_no_content",
                exercise_type=self.exercise_type.value,
                profile=profile_name,
            )

    @property
    def current_item(self) -> Any:
        if self.run.status != RunStatus.IN_PROGRESS:
            return None
        return self.run.items[self.run.current_index]

    def current_prompt(self) -> Prompt | None:
        item = self.current_item
        if item is None:
            return None
        return Prompt(
            exercise_type=self.exercise_type,
            text=self._prompt_text(item),
            choices=self._choices(item),
            position=self.run.success_count + 1,
            total=self.run.target_success,
        )

    def is_complete(self) -> bool:
        return self.run.status == RunStatus.COMPLETED

    @property
    def has_content(self) -> bool:
        return self.run.status != RunStatus.NO_CONTENT

    def submit(self, answer: Any) -> SubmitOutcome:
        """Check an answer against the current item and advance the run."""
        if self.run.status == RunStatus.NO_CONTENT:
            return SubmitOutcome.NO_CONTENT
        if self.run.status == RunStatus.COMPLETED:
            return SubmitOutcome.ALREADY_COMPLETE

        item = self.current_item
        verdict = self._check(item, answer)
        if verdict is None:
            return SubmitOutcome.INVALID
        if not verdict:
            self.run.mistake_count += 1
            self._on_mistake(item)
            return SubmitOutcome.INCORRECT

        self.run.success_count += 1
        self._last_item = item
        self._on_success(item, answer)
        if self.run.success_count >= self.run.target_success:
            self.run.status = RunStatus.COMPLETED
            logger.info(
                "exercise_completed",
                exercise_type=self.exercise_type.value,
                profile=self.profile_name,
                score=self.run.success_count,
                mistakes=self.run.mistake_count,
            )
            return SubmitOutcome.COMPLETED

        self.run.current_index += 1
        self._on_new_item(self.run.items[self.run.current_index])
        return SubmitOutcome.CORRECT

    def to_session_record(self) -> SessionRecord:
        if not self.is_complete():
            raise ExerciseNotCompleteError(
                f"{self.exercise_type.value} run has "
                f"{self.run.success_count}/{self.run.target_success} successes"
            )
        return SessionRecord(
            profile_name=self.profile_name,
            exercise_type=self.exercise_type,
            score=self.run.target_success,
            total_questions=self.run.target_success,
            mistakes=self.run.mistake_count,
            summary_text=self._summary(self._last_item),
        )

    def session_records(self) -> list[SessionRecord]:
        """All records this run produces once complete."""
        return [self.to_session_record()]

    # Hooks

    @abstractmethod
    def _check(self, item: Any, answer: Any) -> bool | None:
        """Return True/False for a right/wrong answer, None for unusable input."""

    @abstractmethod
    def _prompt_text(self, item: Any) -> str: ...

    @abstractmethod
    def _summary(self, item: Any) -> str: ...

    def _choices(self, item: Any) -> list[str]:
        return []

    def _on_new_item(self, item: Any) -> None:
        pass

    def _on_mistake(self, item: Any) -> None:
        pass

    def _on_success(self, item: Any, answer: Any) -> None:
        pass
