"""Exercise library access (game_exercise_library table)."""

import asyncio
from collections.abc import Iterable

import structlog
from pydantic import ValidationError

from kids_gate.exceptions import BackendError
from kids_gate.models.content import (
    ExerciseContent,
    LibraryExercise,
    QuizContent,
    fallback_pool,
    parse_content,
)
from kids_gate.models.profile import ExerciseType
from kids_gate.storage.record_store import RecordStore

logger = structlog.get_logger()

LIBRARY_TABLE = "game_exercise_library"


async def fetch_pool(
    store: RecordStore, profile_name: str, exercise_type: ExerciseType
) -> list[ExerciseContent]:
    """Prompt pool for one profile and type.

    An empty library or an unreachable store yields the built-in pool.
    """
    try:
        rows = await store.select(
            LIBRARY_TABLE, {"type": exercise_type.value, "destinataire": profile_name}
        )
    except BackendError as e:
        logger.warning(
            "content_fetch_failed",
            profile=profile_name,
            exercise_type=exercise_type.value,
            error=str(e),
        )
        return fallback_pool(exercise_type)

    pool: list[ExerciseContent] = []
    for row in rows:
        try:
            pool.append(parse_content(exercise_type, row.get("content") or {}))
        except ValidationError:
            logger.warning("content_row_invalid", row_id=row.get("id"))
    if not pool:
        logger.info(
            "content_fallback_used", profile=profile_name, exercise_type=exercise_type.value
        )
        return fallback_pool(exercise_type)
    return pool


async def fetch_pools(
    store: RecordStore, profile_name: str, exercise_types: Iterable[ExerciseType]
) -> dict[ExerciseType, list[ExerciseContent]]:
    types = list(dict.fromkeys(exercise_types))
    pools = await asyncio.gather(*(fetch_pool(store, profile_name, t) for t in types))
    return dict(zip(types, pools))


async def list_exercises(store: RecordStore, profile_name: str) -> list[LibraryExercise]:
    """All library rows for a profile, newest first."""
    rows = await store.select(
        LIBRARY_TABLE,
        {"destinataire": profile_name},
        order_by="created_at",
        descending=True,
    )
    exercises = []
    for row in rows:
        try:
            exercises.append(LibraryExercise.model_validate(row))
        except ValidationError:
            logger.warning("library_row_invalid", row_id=row.get("id"))
    return exercises


async def add_exercise(
    store: RecordStore,
    profile_name: str,
    exercise_type: ExerciseType,
    content: ExerciseContent,
) -> LibraryExercise:
    if isinstance(content, QuizContent):
        content = content.model_copy(
            update={"wrongAnswers": [w for w in content.wrongAnswers if w.strip()]}
        )
    row = await store.insert(
        LIBRARY_TABLE,
        {
            "type": exercise_type.value,
            "destinataire": profile_name,
            "content": content.model_dump(),
        },
    )
    try:
        exercise = LibraryExercise.model_validate(row)
    except ValidationError as e:
        raise BackendError(f"stored exercise row is invalid: {e}") from e
    logger.info("exercise_added", profile=profile_name, exercise_type=exercise_type.value)
    return exercise


async def delete_exercise(store: RecordStore, exercise_id: int) -> bool:
    deleted = await store.delete(LIBRARY_TABLE, {"id": exercise_id})
    logger.info("exercise_deleted", exercise_id=exercise_id, deleted=deleted)
    return deleted > 0
