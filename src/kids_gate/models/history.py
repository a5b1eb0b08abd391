"""Session history models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kids_gate.models.profile import ExerciseType


class SessionRecord(BaseModel):
    """Immutable log entry for one completed exercise attempt."""

    model_config = ConfigDict(frozen=True)

    profile_name: str
    exercise_type: ExerciseType
    timestamp: datetime = Field(default_factory=datetime.now)
    score: int
    total_questions: int
    mistakes: int = 0
    summary_text: str = ""
    duration_seconds: int | None = None
    audio_reference: str | None = None
    text_read: str | None = None

    def to_record(self) -> dict[str, Any]:
        """Row for the game_exercise_history table."""
        details: dict[str, Any] = {
            "score": self.score,
            "total_questions": self.total_questions,
            "mistakes": self.mistakes,
            "exercise_summary": self.summary_text,
        }
        if self.text_read is not None:
            details["text_read"] = self.text_read
        if self.audio_reference is not None:
            details["audio_url"] = self.audio_reference
        if self.duration_seconds is not None:
            details["duration_seconds"] = self.duration_seconds
        return {
            "game_type": self.exercise_type.value,
            "child_name": self.profile_name,
            "details": details,
        }


class HistoryDetails(BaseModel):
    text_read: str | None = None
    audio_url: str | None = None
    duration_seconds: int | None = None
    score: int | None = None
    total_questions: int | None = None
    mistakes: int | None = None
    exercise_summary: str | None = None


class HistoryItem(BaseModel):
    """A stored history row, as read back for the statistics screen."""

    id: int
    created_at: str
    game_type: str
    child_name: str | None = None
    details: HistoryDetails = Field(default_factory=HistoryDetails)

    @property
    def session_key(self) -> str:
        """Hour bucket (YYYY-MM-DDTHH) used to group rows into sessions."""
        return self.created_at[:13]


class HistorySession(BaseModel):
    """History rows that fall into the same hour."""

    key: str
    label: str
    items: list[HistoryItem] = Field(default_factory=list)
