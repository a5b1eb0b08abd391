"""Session history persistence (game_exercise_history table) and statistics grouping."""

from collections import defaultdict

import structlog
from pydantic import ValidationError

from kids_gate.exceptions import BackendError
from kids_gate.models.history import HistoryItem, HistorySession, SessionRecord
from kids_gate.storage.record_store import RecordStore

logger = structlog.get_logger()

HISTORY_TABLE = "game_exercise_history"


async def append_record(store: RecordStore, record: SessionRecord) -> bool:
    """Write a session record. Failures are logged and reported, never raised."""
    try:
        await store.insert(HISTORY_TABLE, record.to_record())
    except BackendError as e:
        logger.error(
            "history_save_failed",
            profile=record.profile_name,
            exercise_type=record.exercise_type.value,
            error=str(e),
        )
        return False
    logger.info(
        "history_saved",
        profile=record.profile_name,
        exercise_type=record.exercise_type.value,
    )
    return True


async def read_history(store: RecordStore, profile_name: str) -> list[HistoryItem]:
    """History rows of one profile, newest first."""
    rows = await store.select(
        HISTORY_TABLE,
        {"child_name": profile_name},
        order_by="created_at",
        descending=True,
    )
    items = []
    for row in rows:
        try:
            items.append(HistoryItem.model_validate(row))
        except ValidationError:
            logger.warning("history_row_invalid", row_id=row.get("id"))
    return items


def session_label(key: str) -> str:
    """'2026-01-18T14' -> 'Session of 2026-01-18 around 14h'."""
    return f"Session of {key[:10]} around {key[-2:]}h"


def group_by_session(items: list[HistoryItem]) -> list[HistorySession]:
    """Group rows by hour of creation, most recent hour first."""
    buckets: dict[str, list[HistoryItem]] = defaultdict(list)
    for item in items:
        buckets[item.session_key].append(item)
    return [
        HistorySession(key=key, label=session_label(key), items=buckets[key])
        for key in sorted(buckets, reverse=True)
    ]
