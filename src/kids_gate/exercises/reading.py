"""Read-aloud exercise."""

import random
import time
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import BaseModel

from kids_gate.exceptions import ExerciseNotCompleteError
from kids_gate.exercises.base import ExerciseEngine
from kids_gate.models.content import LectureContent
from kids_gate.models.history import SessionRecord
from kids_gate.models.profile import ExerciseType

SUMMARY_CHARS = 60


class ReadingSubmission(BaseModel):
    """The "done" signal for one text, with the uploaded recording if any."""

    audio_reference: str | None = None


class ReadingEngine(ExerciseEngine):
    """Shows texts one after the other; every "done" counts as a success.

    Time spent on each text is measured with ``clock`` and a record is
    kept per text read, so recordings stay attached to the text they belong to.

    Args:
        pool: Texts to read.
        target_count: Number of texts in the session.
        profile_name: Profile the records belong to.
        rng: Random source.
        shuffle: Draw texts in random order (False keeps library order).
        clock: Monotonic clock in seconds.
    """

    exercise_type = ExerciseType.READING

    def __init__(
        self,
        pool: Sequence[LectureContent],
        target_count: int,
        profile_name: str,
        rng: random.Random | None = None,
        shuffle: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.shuffle = shuffle
        self._clock = clock
        self._started_at = clock()
        self._records: list[SessionRecord] = []
        super().__init__(pool, target_count, profile_name, rng=rng)

    def _on_new_item(self, item: LectureContent) -> None:
        self._started_at = self._clock()

    def _check(self, item: LectureContent, answer: Any) -> bool | None:
        return True

    def _on_success(self, item: LectureContent, answer: Any) -> None:
        reference = answer.audio_reference if isinstance(answer, ReadingSubmission) else None
        self._records.append(
            SessionRecord(
                profile_name=self.profile_name,
                exercise_type=self.exercise_type,
                score=self.run.success_count,
                total_questions=self.run.target_success,
                mistakes=0,
                summary_text=self._summary(item),
                duration_seconds=int(self._clock() - self._started_at),
                audio_reference=reference,
                text_read=item.text,
            )
        )

    def _prompt_text(self, item: LectureContent) -> str:
        return item.text

    def _summary(self, item: LectureContent) -> str:
        text = item.text.strip()
        if len(text) > SUMMARY_CHARS:
            text = text[:SUMMARY_CHARS].rstrip() + "…"
        return f"read: {text}"

    def to_session_record(self) -> SessionRecord:
        if not self.is_complete():
            raise ExerciseNotCompleteError(
                f"reading run has {self.run.success_count}/{self.run.target_success} texts"
            )
        return self._records[-1]

    def session_records(self) -> list[SessionRecord]:
        if not self.is_complete():
            raise ExerciseNotCompleteError("reading run is not complete")
        return list(self._records)
