"""Smoke tests for the storage modules against the local JSON record store."""

from unittest.mock import AsyncMock

import pytest

from kids_gate.exceptions import BackendError
from kids_gate.models.content import MathContent, QuizContent, WriteContent
from kids_gate.models.history import HistoryItem, SessionRecord
from kids_gate.models.profile import ExerciseSlot, ExerciseType, ProfileConfiguration
from kids_gate.storage.content_library import (
    LIBRARY_TABLE,
    add_exercise,
    delete_exercise,
    fetch_pool,
    fetch_pools,
    list_exercises,
)
from kids_gate.storage.history import (
    HISTORY_TABLE,
    append_record,
    group_by_session,
    read_history,
)
from kids_gate.storage.profile_config import (
    SETTINGS_TABLE,
    load_configuration,
    save_configuration,
    update_exercises,
    update_timers,
)
from kids_gate.storage.record_store import JsonRecordStore, RecordStore
from kids_gate.storage.recordings import upload_recording


@pytest.fixture
def store(tmp_path):
    return JsonRecordStore(tmp_path / "records")


@pytest.fixture
def failing_store():
    store = AsyncMock(spec=RecordStore)
    error = BackendError("offline")
    store.select.side_effect = error
    store.insert.side_effect = error
    store.update.side_effect = error
    store.delete.side_effect = error
    store.upload.side_effect = error
    return store


class TestJsonRecordStore:
    async def test_select_empty_table(self, store):
        assert await store.select("anything") == []

    async def test_insert_assigns_id_and_created_at(self, store):
        first = await store.insert("t", {"name": "a"})
        second = await store.insert("t", {"name": "b"})
        assert first["id"] == 1
        assert second["id"] == 2
        assert "created_at" in first

    async def test_filters_order_and_limit(self, store):
        for i, name in enumerate(["b", "a", "c"]):
            await store.insert("t", {"name": name, "group": i % 2})
        rows = await store.select("t", {"group": 0}, order_by="name")
        assert [r["name"] for r in rows] == ["b", "c"]
        rows = await store.select("t", order_by="name", descending=True, limit=2)
        assert [r["name"] for r in rows] == ["c", "b"]

    async def test_update_and_delete(self, store):
        await store.insert("t", {"name": "a"})
        assert await store.update("t", {"name": "z"}, {"id": 1}) == 1
        assert (await store.select("t"))[0]["name"] == "z"
        assert await store.delete("t", {"id": 1}) == 1
        assert await store.delete("t", {"id": 1}) == 0

    async def test_upload_writes_bucket_file(self, store):
        reference = await store.upload("lectures", "a.m4a", b"abc", "audio/m4a")
        assert reference.startswith("file://")
        assert (store.data_dir / "buckets" / "lectures" / "a.m4a").read_bytes() == b"abc"

    async def test_corrupt_table_raises_backend_error(self, store):
        (store.data_dir / "t.json").write_text("{not json")
        with pytest.raises(BackendError):
            await store.select("t")


class TestProfileConfiguration:
    async def test_missing_row_returns_defaults(self, store):
        config = await load_configuration(store, "Alice")
        assert config == ProfileConfiguration.defaults()

    async def test_backend_failure_returns_defaults(self, failing_store):
        config = await load_configuration(failing_store, "Alice")
        assert config.allowance_seconds == 1200

    async def test_save_then_load_is_equivalent(self, store):
        config = ProfileConfiguration(
            allowance_seconds=15 * 60,
            break_seconds=5 * 60,
            cycle_count=3,
            exercises=[
                ExerciseSlot(exercise_type=ExerciseType.SPELLING, target_count=2),
                ExerciseSlot(exercise_type=ExerciseType.QUIZ, enabled=False, target_count=7),
                ExerciseSlot(exercise_type=ExerciseType.READING, target_count=1),
            ],
        )
        await save_configuration(store, "Alice", config)
        assert await load_configuration(store, "Alice") == config

    async def test_saving_twice_keeps_one_row(self, store):
        config = ProfileConfiguration.defaults(allowance_minutes=5)
        await save_configuration(store, "Alice", config)
        await save_configuration(store, "Alice", config)
        assert len(await store.select(SETTINGS_TABLE)) == 1
        assert await load_configuration(store, "Alice") == config

    async def test_profiles_are_isolated(self, store):
        await save_configuration(store, "Alice", ProfileConfiguration.defaults(allowance_minutes=5))
        await save_configuration(store, "Bob", ProfileConfiguration.defaults(allowance_minutes=30))
        assert (await load_configuration(store, "Alice")).allowance_seconds == 300
        assert (await load_configuration(store, "Bob")).allowance_seconds == 1800

    async def test_legacy_labels_are_read(self, store):
        await store.insert(
            SETTINGS_TABLE,
            {
                "profile_name": "Alice",
                "number_of_cycles": 2,
                "initial_delay": 10,
                "break_delay": 5,
                "games_config": [
                    {"type": "Écriture", "isEnabled": True, "questionCount": 4},
                    {"type": "Lecture", "isEnabled": False, "questionCount": 1},
                ],
            },
        )
        config = await load_configuration(store, "Alice")
        assert [s.exercise_type for s in config.exercises] == [
            ExerciseType.SPELLING,
            ExerciseType.READING,
        ]
        assert config.allowance_seconds == 600

    async def test_null_timer_columns_read_as_defaults(self, store):
        await store.insert(
            SETTINGS_TABLE,
            {
                "profile_name": "Alice",
                "number_of_cycles": None,
                "initial_delay": None,
                "break_delay": None,
                "games_config": [{"type": "math", "isEnabled": True, "questionCount": None}],
            },
        )
        config = await load_configuration(store, "Alice")
        assert config.allowance_seconds == 0
        assert config.break_seconds == 0
        assert config.cycle_count == 1
        assert config.exercises == [
            ExerciseSlot(exercise_type=ExerciseType.ARITHMETIC, target_count=1)
        ]

    async def test_unknown_slot_type_is_skipped(self, store):
        await store.insert(
            SETTINGS_TABLE,
            {
                "profile_name": "Alice",
                "number_of_cycles": 1,
                "initial_delay": 10,
                "break_delay": 5,
                "games_config": [
                    {"type": "dictee", "isEnabled": True, "questionCount": 2},
                    {"isEnabled": True},
                    {"type": "quiz", "isEnabled": True, "questionCount": 3},
                ],
            },
        )
        config = await load_configuration(store, "Alice")
        assert config.exercises == [ExerciseSlot(exercise_type=ExerciseType.QUIZ, target_count=3)]
        assert config.allowance_seconds == 600

    async def test_unreadable_row_returns_defaults(self, store):
        await store.insert(
            SETTINGS_TABLE,
            {"profile_name": "Alice", "initial_delay": "soon", "games_config": []},
        )
        config = await load_configuration(store, "Alice")
        assert config == ProfileConfiguration.defaults()

    async def test_negative_delay_returns_defaults(self, store):
        await store.insert(
            SETTINGS_TABLE,
            {"profile_name": "Alice", "initial_delay": -5, "games_config": []},
        )
        config = await load_configuration(store, "Alice")
        assert config == ProfileConfiguration.defaults()

    async def test_editor_repairs_unreadable_row(self, store):
        await store.insert(
            SETTINGS_TABLE,
            {"profile_name": "Alice", "initial_delay": "soon", "games_config": []},
        )
        await update_timers(store, "Alice", 15, 5, 2)
        loaded = await load_configuration(store, "Alice")
        assert loaded.allowance_seconds == 900
        assert loaded.exercises == ProfileConfiguration.defaults().exercises

    async def test_update_timers_keeps_exercises(self, store):
        slots = [ExerciseSlot(exercise_type=ExerciseType.ARITHMETIC, target_count=9)]
        await save_configuration(store, "Alice", ProfileConfiguration(exercises=slots))
        updated = await update_timers(store, "Alice", 30, 15, 4)
        assert updated.exercises == slots
        loaded = await load_configuration(store, "Alice")
        assert loaded.allowance_seconds == 1800
        assert loaded.break_seconds == 900
        assert loaded.cycle_count == 4
        assert loaded.exercises == slots

    async def test_update_exercises_keeps_timers(self, store):
        await save_configuration(
            store, "Alice", ProfileConfiguration.defaults(allowance_minutes=45, break_minutes=3)
        )
        slots = [ExerciseSlot(exercise_type=ExerciseType.QUIZ, target_count=2)]
        await update_exercises(store, "Alice", slots, cycle_count=2)
        loaded = await load_configuration(store, "Alice")
        assert loaded.allowance_seconds == 45 * 60
        assert loaded.break_seconds == 3 * 60
        assert loaded.cycle_count == 2
        assert loaded.exercises == slots

    async def test_update_propagates_backend_error(self, failing_store):
        with pytest.raises(BackendError):
            await update_timers(failing_store, "Alice", 10, 5, 1)


class TestContentLibrary:
    async def test_empty_spelling_pool_falls_back_to_builtin_words(self, store):
        pool = await fetch_pool(store, "Alice", ExerciseType.SPELLING)
        assert [c.correct for c in pool] == ["MYTHOLOGIE", "AVENTURE", "ANTIQUE"]

    async def test_backend_failure_falls_back(self, failing_store):
        pool = await fetch_pool(failing_store, "Alice", ExerciseType.QUIZ)
        assert len(pool) == 3

    async def test_pool_scoped_to_profile_and_type(self, store):
        await add_exercise(store, "Alice", ExerciseType.ARITHMETIC, MathContent(num1=3, num2=4))
        await add_exercise(store, "Bob", ExerciseType.ARITHMETIC, MathContent(num1=5, num2=5))
        await add_exercise(
            store, "Alice", ExerciseType.SPELLING, WriteContent(correct="CHAT", wrong="CHA")
        )
        pool = await fetch_pool(store, "Alice", ExerciseType.ARITHMETIC)
        assert pool == [MathContent(num1=3, num2=4)]

    async def test_invalid_rows_skipped(self, store):
        await store.insert(LIBRARY_TABLE, {"type": "math", "destinataire": "Alice", "content": {}})
        await add_exercise(store, "Alice", ExerciseType.ARITHMETIC, MathContent(num1=3, num2=4))
        pool = await fetch_pool(store, "Alice", ExerciseType.ARITHMETIC)
        assert pool == [MathContent(num1=3, num2=4)]

    async def test_fetch_pools(self, store):
        pools = await fetch_pools(
            store, "Alice", [ExerciseType.QUIZ, ExerciseType.READING, ExerciseType.QUIZ]
        )
        assert set(pools) == {ExerciseType.QUIZ, ExerciseType.READING}

    async def test_add_filters_blank_wrong_answers(self, store):
        exercise = await add_exercise(
            store,
            "Alice",
            ExerciseType.QUIZ,
            QuizContent(text="?", correctAnswer="Antique", wrongAnswers=["Antic", " ", ""]),
        )
        assert exercise.content["wrongAnswers"] == ["Antic"]

    async def test_add_without_stored_id_is_backend_error(self):
        store = AsyncMock(spec=RecordStore)
        store.insert.return_value = {"type": "math", "content": {"num1": 1, "num2": 1}}
        with pytest.raises(BackendError):
            await add_exercise(store, "Alice", ExerciseType.ARITHMETIC, MathContent(num1=1, num2=1))

    async def test_list_and_delete(self, store):
        first = await add_exercise(store, "Alice", ExerciseType.ARITHMETIC, MathContent(num1=2, num2=2))
        await add_exercise(store, "Alice", ExerciseType.ARITHMETIC, MathContent(num1=3, num2=3))
        listed = await list_exercises(store, "Alice")
        assert len(listed) == 2
        assert await delete_exercise(store, first.id)
        assert not await delete_exercise(store, first.id)
        assert len(await list_exercises(store, "Alice")) == 1


class TestHistory:
    def make_record(self, **overrides):
        data = {
            "profile_name": "Alice",
            "exercise_type": ExerciseType.QUIZ,
            "score": 3,
            "total_questions": 3,
            "summary_text": "word: Antique",
        }
        data.update(overrides)
        return SessionRecord(**data)

    async def test_append_and_read(self, store):
        assert await append_record(store, self.make_record())
        await append_record(store, self.make_record(profile_name="Bob"))
        items = await read_history(store, "Alice")
        assert len(items) == 1
        assert items[0].game_type == "quiz"
        assert items[0].details.exercise_summary == "word: Antique"
        assert len(await store.select(HISTORY_TABLE)) == 2

    async def test_append_failure_is_reported_not_raised(self, failing_store):
        assert not await append_record(failing_store, self.make_record())

    def test_group_by_session(self):
        items = [
            HistoryItem(id=1, created_at="2026-01-18T09:10:00", game_type="quiz"),
            HistoryItem(id=2, created_at="2026-01-18T14:05:00", game_type="math"),
            HistoryItem(id=3, created_at="2026-01-18T14:45:00", game_type="write"),
        ]
        sessions = group_by_session(items)
        assert [s.key for s in sessions] == ["2026-01-18T14", "2026-01-18T09"]
        assert sessions[0].label == "Session of 2026-01-18 around 14h"
        assert [i.id for i in sessions[0].items] == [2, 3]


class TestRecordings:
    async def test_upload_names_file(self, store):
        reference = await upload_recording(store, "lectures", b"audio")
        assert reference is not None
        assert "lecture_" in reference
        assert reference.endswith(".m4a")

    async def test_failed_upload_returns_none(self, failing_store):
        assert await upload_recording(failing_store, "lectures", b"audio") is None

    async def test_empty_recording_skipped(self, store):
        assert await upload_recording(store, "lectures", b"") is None
