"""REST API routes for parent configuration, the exercise library and history."""

import functools
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, ValidationError

from kids_gate.config import get_settings
from kids_gate.exceptions import BackendError
from kids_gate.models.content import parse_content
from kids_gate.models.profile import ExerciseSlot, ExerciseType, ProfileConfiguration
from kids_gate.storage.content_library import add_exercise, delete_exercise, list_exercises
from kids_gate.storage.history import group_by_session, read_history
from kids_gate.storage.profile_config import (
    load_configuration,
    save_configuration,
    update_exercises,
    update_timers,
)
from kids_gate.storage.record_store import RecordStore, create_record_store

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


@functools.lru_cache
def get_record_store() -> RecordStore:
    """Record store shared by the REST routes and the WebSocket sessions."""
    return create_record_store(get_settings())


def default_configuration() -> ProfileConfiguration:
    settings = get_settings()
    return ProfileConfiguration.defaults(
        allowance_minutes=settings.default_allowance_minutes,
        break_minutes=settings.default_break_minutes,
    )


@contextmanager
def backend_errors() -> Iterator[None]:
    """Turn record store failures into 502 responses."""
    try:
        yield
    except BackendError as e:
        logger.warning("backend_unavailable", error=str(e))
        raise HTTPException(status_code=502, detail="Record store unavailable")


class TimersUpdate(BaseModel):
    allowance_minutes: int = Field(ge=0, le=60)
    break_minutes: int = Field(ge=0, le=30)
    cycle_count: int = Field(ge=1, le=10)


class ExercisesUpdate(BaseModel):
    exercises: list[ExerciseSlot]
    cycle_count: int | None = Field(default=None, ge=1, le=10)


class NewExercise(BaseModel):
    type: ExerciseType
    content: dict[str, Any]


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/profiles/{profile}/configuration")
async def get_configuration(
    profile: str, store: RecordStore = Depends(get_record_store)
) -> dict:
    """Stored configuration of a profile, or the defaults."""
    configuration = await load_configuration(store, profile, default_configuration())
    return configuration.model_dump(mode="json")


@router.put("/profiles/{profile}/configuration")
async def put_configuration(
    profile: str,
    configuration: ProfileConfiguration,
    store: RecordStore = Depends(get_record_store),
) -> dict:
    with backend_errors():
        await save_configuration(store, profile, configuration)
    return configuration.model_dump(mode="json")


@router.put("/profiles/{profile}/configuration/timers")
async def put_timers(
    profile: str, body: TimersUpdate, store: RecordStore = Depends(get_record_store)
) -> dict:
    """Time editor: allowance, break and cycles. Exercise slots are kept."""
    with backend_errors():
        configuration = await update_timers(
            store,
            profile,
            body.allowance_minutes,
            body.break_minutes,
            body.cycle_count,
            defaults=default_configuration(),
        )
    return configuration.model_dump(mode="json")


@router.put("/profiles/{profile}/configuration/exercises")
async def put_exercises(
    profile: str, body: ExercisesUpdate, store: RecordStore = Depends(get_record_store)
) -> dict:
    """Exercise editor: ordered slots. Timers are kept."""
    with backend_errors():
        configuration = await update_exercises(
            store,
            profile,
            body.exercises,
            cycle_count=body.cycle_count,
            defaults=default_configuration(),
        )
    return configuration.model_dump(mode="json")


@router.get("/profiles/{profile}/exercises")
async def get_exercises(
    profile: str,
    exercise_type: ExerciseType | None = Query(default=None, alias="type"),
    store: RecordStore = Depends(get_record_store),
) -> list[dict]:
    with backend_errors():
        exercises = await list_exercises(store, profile)
    return [
        e.model_dump(mode="json")
        for e in exercises
        if exercise_type is None or e.type == exercise_type
    ]


@router.post("/profiles/{profile}/exercises", status_code=201)
async def post_exercise(
    profile: str, body: NewExercise, store: RecordStore = Depends(get_record_store)
) -> dict:
    try:
        content = parse_content(body.type, body.content)
    except ValidationError as e:
        raise HTTPException(
            status_code=422, detail=e.errors(include_url=False, include_context=False)
        )
    with backend_errors():
        exercise = await add_exercise(store, profile, body.type, content)
    return exercise.model_dump(mode="json")


@router.delete("/exercises/{exercise_id}")
async def remove_exercise(
    exercise_id: int, store: RecordStore = Depends(get_record_store)
) -> dict:
    with backend_errors():
        deleted = await delete_exercise(store, exercise_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return {"deleted": exercise_id}


@router.get("/profiles/{profile}/history")
async def get_history(
    profile: str, store: RecordStore = Depends(get_record_store)
) -> list[dict]:
    """History grouped into hour-long sessions, newest first."""
    with backend_errors():
        items = await read_history(store, profile)
    return [session.model_dump(mode="json") for session in group_by_session(items)]
