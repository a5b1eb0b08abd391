"""Per-profile configuration persistence (game_app_settings table)."""

import structlog

from kids_gate.exceptions import BackendError
from kids_gate.models.profile import ExerciseSlot, ProfileConfiguration
from kids_gate.storage.record_store import RecordStore

logger = structlog.get_logger()

SETTINGS_TABLE = "game_app_settings"


async def _fetch_row(store: RecordStore, profile_name: str) -> dict | None:
    rows = await store.select(SETTINGS_TABLE, {"profile_name": profile_name}, limit=1)
    return rows[0] if rows else None


async def load_configuration(
    store: RecordStore,
    profile_name: str,
    defaults: ProfileConfiguration | None = None,
) -> ProfileConfiguration:
    """Load a profile's configuration, falling back to defaults.

    Defaults are used when the profile has no row yet or the store is
    unreachable, so the gate always gets a usable configuration.
    """
    fallback = defaults or ProfileConfiguration.defaults()
    try:
        row = await _fetch_row(store, profile_name)
    except BackendError as e:
        logger.warning("configuration_load_failed", profile=profile_name, error=str(e))
        return fallback.model_copy(deep=True)
    if row is None:
        logger.info("configuration_defaults_used", profile=profile_name)
        return fallback.model_copy(deep=True)
    try:
        return ProfileConfiguration.from_record(row)
    except (TypeError, ValueError) as e:
        logger.warning("configuration_row_invalid", profile=profile_name, error=str(e))
        return fallback.model_copy(deep=True)


async def save_configuration(
    store: RecordStore, profile_name: str, configuration: ProfileConfiguration
) -> None:
    """Write the whole configuration row; the slot list is never patched per slot.

    Raises:
        BackendError: The store rejected the write. Nothing is changed.
    """
    record = configuration.to_record(profile_name)
    if await _fetch_row(store, profile_name) is None:
        await store.insert(SETTINGS_TABLE, record)
    else:
        await store.update(SETTINGS_TABLE, record, {"profile_name": profile_name})
    logger.info(
        "configuration_saved",
        profile=profile_name,
        allowance_minutes=record["initial_delay"],
        slots=len(record["games_config"]),
    )


async def _load_for_edit(
    store: RecordStore, profile_name: str, defaults: ProfileConfiguration | None
) -> ProfileConfiguration:
    # Strict read: store failures propagate to the caller. An unreadable row
    # is replaced by the defaults on the next save.
    fallback = defaults or ProfileConfiguration.defaults()
    row = await _fetch_row(store, profile_name)
    if row is None:
        return fallback.model_copy(deep=True)
    try:
        return ProfileConfiguration.from_record(row)
    except (TypeError, ValueError) as e:
        logger.warning("configuration_row_invalid", profile=profile_name, error=str(e))
        return fallback.model_copy(deep=True)


async def update_timers(
    store: RecordStore,
    profile_name: str,
    allowance_minutes: int,
    break_minutes: int,
    cycle_count: int,
    defaults: ProfileConfiguration | None = None,
) -> ProfileConfiguration:
    """Change allowance, break and cycles, keeping the exercise slots."""
    current = await _load_for_edit(store, profile_name, defaults)
    updated = current.model_copy(
        update={
            "allowance_seconds": allowance_minutes * 60,
            "break_seconds": break_minutes * 60,
            "cycle_count": cycle_count,
        }
    )
    await save_configuration(store, profile_name, updated)
    return updated


async def update_exercises(
    store: RecordStore,
    profile_name: str,
    exercises: list[ExerciseSlot],
    cycle_count: int | None = None,
    defaults: ProfileConfiguration | None = None,
) -> ProfileConfiguration:
    """Replace the ordered slot list (and optionally cycles), keeping the timers."""
    current = await _load_for_edit(store, profile_name, defaults)
    update: dict = {"exercises": list(exercises)}
    if cycle_count is not None:
        update["cycle_count"] = cycle_count
    updated = current.model_copy(update=update)
    await save_configuration(store, profile_name, updated)
    return updated
