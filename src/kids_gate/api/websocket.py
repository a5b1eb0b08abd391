"""Tablet WebSocket handler: drives the gate, exercises and the settings lock."""

import asyncio
import base64
import binascii
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from kids_gate.config import Settings
from kids_gate.exceptions import InvalidTransitionError
from kids_gate.exercises import (
    ExerciseEngine,
    ReadingSubmission,
    SubmitOutcome,
    create_engine,
)
from kids_gate.gate import AttentionAlert, ParentalOverrideGate, PeriodicTicker, SessionGate
from kids_gate.models.content import ExerciseContent, fallback_pool
from kids_gate.models.gate import GatePhase
from kids_gate.models.history import SessionRecord
from kids_gate.models.profile import ExerciseSlot, ExerciseType, ProfileConfiguration
from kids_gate.storage.content_library import fetch_pool, fetch_pools
from kids_gate.storage.history import append_record
from kids_gate.storage.profile_config import load_configuration
from kids_gate.storage.record_store import RecordStore
from kids_gate.storage.recordings import upload_recording

logger = structlog.get_logger()

PRACTICE_DEFAULT_COUNT = 5


class GateSessionManager:
    """Everything one connected tablet needs: gate, practice run and settings lock.

    Args:
        settings: Application settings.
        browser_ws: WebSocket connection to the tablet.
        store: Record store for configuration, content and history.
    """

    def __init__(self, settings: Settings, browser_ws: WebSocket, store: RecordStore):
        self.settings = settings
        self.browser_ws = browser_ws
        self.store = store
        self.profile_name: str | None = None
        self.gate: SessionGate | None = None
        self.practice: ExerciseEngine | None = None
        self.pools: dict[ExerciseType, list[ExerciseContent]] = {}
        self.override = ParentalOverrideGate()
        self.alert = AttentionAlert(
            on_change=self._on_alert_change,
            delay_seconds=settings.alert_delay_seconds,
            duration_seconds=settings.alert_duration_seconds,
        )
        self._ticker = PeriodicTicker(
            settings.tick_interval_seconds, self._on_tick, name="gate_tick"
        )
        self._tasks: set[asyncio.Task] = set()
        self._last_state: dict | None = None
        self._announced_engine: ExerciseEngine | None = None
        self._handlers: dict[str, Callable[[dict], Awaitable[None]]] = {
            "activate_profile": self._on_activate_profile,
            "content_shown": self._on_content_shown,
            "content_hidden": self._on_content_hidden,
            "content_left": self._on_content_left,
            "pause": self._on_pause,
            "resume": self._on_resume,
            "submit_answer": self._on_submit_answer,
            "reading_done": self._on_reading_done,
            "start_practice": self._on_start_practice,
            "leave_practice": self._on_leave_practice,
            "open_settings": self._on_open_settings,
            "override_answer": self._on_override_answer,
            "override_device_auth": self._on_override_device_auth,
            "close_settings": self._on_close_settings,
            "trigger_alert": self._on_trigger_alert,
        }

    async def handle_message(self, data: dict) -> None:
        """Dispatch one client message."""
        msg_type = data.get("type", "")
        handler = self._handlers.get(msg_type)
        if handler is None:
            await self._send_error(f"unknown message type: {msg_type!r}")
            return
        try:
            await handler(data)
        except InvalidTransitionError as e:
            await self._send_error(str(e))
        except ValueError as e:
            # Bad exercise type or count in the message
            await self._send_error(str(e))

    async def stop(self) -> None:
        """Stop timers and wait for pending history writes."""
        await self._ticker.stop()
        await self.alert.cancel()
        if self.gate is not None:
            self.gate.deactivate()
            self.gate = None
        self.practice = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("gate_session_stopped", profile=self.profile_name)

    # Gate

    async def _on_activate_profile(self, data: dict) -> None:
        profile = str(data.get("profile", "")).strip()
        if not profile:
            await self._send_error("profile is required")
            return
        configuration = await self._load_configuration(profile)
        if self.gate is not None:
            await self._ticker.stop()
            self.gate.deactivate()
        self.profile_name = profile
        self.gate = SessionGate(
            profile,
            self._build_engine,
            on_record=self._save_record,
            require_override_after_cycles=self.settings.require_override_after_cycles,
        )
        self._last_state = None
        self._announced_engine = None
        self.gate.activate(configuration)
        self._ticker.start()
        await self._sync_gate()

    async def _on_content_shown(self, data: dict) -> None:
        self._require_gate().set_content_visible(True)
        await self._sync_gate()

    async def _on_content_hidden(self, data: dict) -> None:
        self._require_gate().set_content_visible(False)
        await self._sync_gate()

    async def _on_content_left(self, data: dict) -> None:
        if self.gate is None:
            return
        await self._ticker.stop()
        self.gate.deactivate()
        self._announced_engine = None
        await self._sync_gate()

    async def _on_pause(self, data: dict) -> None:
        self._require_gate().pause()
        await self._sync_gate()

    async def _on_resume(self, data: dict) -> None:
        self._require_gate().resume()
        await self._sync_gate()

    async def _on_tick(self) -> None:
        if self.gate is None:
            return
        self.gate.tick()
        await self._sync_gate()

    def _require_gate(self) -> SessionGate:
        if self.gate is None:
            raise InvalidTransitionError("no profile is active")
        return self.gate

    async def _load_configuration(self, profile: str) -> ProfileConfiguration:
        defaults = ProfileConfiguration.defaults(
            allowance_minutes=self.settings.default_allowance_minutes,
            break_minutes=self.settings.default_break_minutes,
        )
        configuration = await load_configuration(self.store, profile, defaults)
        types = [slot.exercise_type for slot in configuration.enabled_slots]
        self.pools = await fetch_pools(self.store, profile, types)
        return configuration

    def _build_engine(self, slot: ExerciseSlot) -> ExerciseEngine:
        pool = self.pools.get(slot.exercise_type) or fallback_pool(slot.exercise_type)
        return create_engine(slot.exercise_type, pool, slot.target_count, self.profile_name)

    def _save_record(self, record: SessionRecord) -> None:
        task = asyncio.create_task(append_record(self.store, record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _sync_gate(self) -> None:
        """Send the gate state if it changed, and the exercise if a new one started."""
        gate = self.gate
        state = gate.state if gate is not None else None
        payload = {
            "type": "gate_state",
            "phase": GatePhase.IDLE.value,
            "elapsed_seconds": 0,
            "remaining_seconds": 0,
        }
        if state is not None:
            payload.update(state.model_dump(mode="json"))
            payload["remaining_seconds"] = state.remaining_seconds
            payload["cycles_completed"] = gate.cycles_completed
        if payload != self._last_state:
            self._last_state = payload
            await self._send_to_browser(payload)
        engine = gate.engine if gate is not None else None
        if engine is not None and engine is not self._announced_engine:
            self._announced_engine = engine
            await self._send_exercise(engine, mode="gate")

    # Exercises

    def _active_engine(self) -> tuple[ExerciseEngine, str]:
        if self.practice is not None:
            return self.practice, "practice"
        if self.gate is not None and self.gate.engine is not None:
            return self.gate.engine, "gate"
        raise InvalidTransitionError("no exercise is running")

    async def _on_submit_answer(self, data: dict) -> None:
        engine, mode = self._active_engine()
        if engine.exercise_type == ExerciseType.READING:
            raise InvalidTransitionError("reading exercises finish with reading_done")
        await self._submit(engine, mode, str(data.get("answer", "")))

    async def _on_reading_done(self, data: dict) -> None:
        engine, mode = self._active_engine()
        if engine.exercise_type != ExerciseType.READING:
            raise InvalidTransitionError("the running exercise is not a reading")
        reference = None
        audio = data.get("audio")
        if audio:
            try:
                payload = base64.b64decode(audio, validate=True)
            except (binascii.Error, ValueError):
                logger.warning("recording_decode_failed", profile=self.profile_name)
                payload = b""
            reference = await upload_recording(
                self.store,
                self.settings.recordings_bucket,
                payload,
                content_type=data.get("content_type", "audio/m4a"),
            )
        await self._submit(engine, mode, ReadingSubmission(audio_reference=reference))

    async def _submit(self, engine: ExerciseEngine, mode: str, answer: Any) -> None:
        if mode == "gate":
            outcome = self.gate.submit(answer)
        else:
            outcome = engine.submit(answer)
            if outcome == SubmitOutcome.COMPLETED:
                for record in engine.session_records():
                    self._save_record(record)
                self.practice = None
        await self._send_to_browser({
            "type": "answer_result",
            "mode": mode,
            "outcome": outcome.value,
            "success_count": engine.run.success_count,
            "mistakes": engine.run.mistake_count,
        })
        if outcome in (SubmitOutcome.CORRECT, SubmitOutcome.INCORRECT):
            await self._send_exercise(engine, mode)
        if mode == "gate":
            await self._sync_gate()

    async def _on_start_practice(self, data: dict) -> None:
        profile = str(data.get("profile") or self.profile_name or "").strip()
        if not profile:
            await self._send_error("profile is required")
            return
        exercise_type = ExerciseType(data.get("exercise_type", ""))
        count = int(data.get("count") or PRACTICE_DEFAULT_COUNT)
        pool = await fetch_pool(self.store, profile, exercise_type)
        options = {}
        if exercise_type == ExerciseType.READING:
            options["shuffle"] = data.get("order", "shuffled") != "in_order"
        self.practice = create_engine(exercise_type, pool, count, profile, **options)
        logger.info(
            "practice_started", profile=profile, exercise_type=exercise_type.value, count=count
        )
        await self._send_exercise(self.practice, mode="practice")

    async def _on_leave_practice(self, data: dict) -> None:
        if self.practice is not None:
            logger.info(
                "practice_abandoned",
                profile=self.practice.profile_name,
                exercise_type=self.practice.exercise_type.value,
            )
        self.practice = None

    async def _send_exercise(self, engine: ExerciseEngine, mode: str) -> None:
        prompt = engine.current_prompt()
        await self._send_to_browser({
            "type": "exercise",
            "mode": mode,
            "exercise_type": engine.exercise_type.value,
            "status": engine.run.status.value,
            "prompt": prompt.model_dump(mode="json") if prompt is not None else None,
        })

    # Settings lock

    async def _on_open_settings(self, data: dict) -> None:
        self.override.rearm()
        await self._send_override_state()

    async def _on_override_answer(self, data: dict) -> None:
        if self.override.submit_answer(str(data.get("answer", ""))):
            await self._release_gate_if_waiting()
        await self._send_override_state()

    async def _on_override_device_auth(self, data: dict) -> None:
        success = bool(data.get("success", False))
        available = bool(data.get("available", True))
        if self.override.report_device_auth(success, available=available):
            await self._release_gate_if_waiting()
        await self._send_override_state()

    async def _on_close_settings(self, data: dict) -> None:
        self.override.rearm()
        await self._send_override_state()
        if self.gate is not None and self.gate.phase != GatePhase.IDLE:
            # Pick up whatever the parent just saved
            configuration = await self._load_configuration(self.profile_name)
            self.gate.apply_configuration(configuration)
            await self._sync_gate()

    async def _on_trigger_alert(self, data: dict) -> None:
        if not self.override.is_unlocked:
            await self._send_error("settings are locked")
            return
        self.alert.trigger()

    async def _on_alert_change(self, visible: bool) -> None:
        await self._send_to_browser({"type": "attention_alert", "visible": visible})

    async def _release_gate_if_waiting(self) -> None:
        if self.gate is not None and self.gate.state.override_required:
            self.gate.release_with_override()
            await self._sync_gate()

    async def _send_override_state(self) -> None:
        await self._send_to_browser({"type": "override_state", **self.override.snapshot()})

    async def _send_error(self, message: str) -> None:
        await self._send_to_browser({"type": "error", "message": message})

    async def _send_to_browser(self, data: dict) -> None:
        """Send a message to the tablet WebSocket."""
        try:
            await self.browser_ws.send_json(data)
        except Exception:
            logger.warning("browser_send_failed", message_type=data.get("type"))


async def handle_browser_websocket(
    websocket: WebSocket, settings: Settings, store: RecordStore
) -> None:
    """Handle a tablet WebSocket connection."""
    await websocket.accept()
    manager = GateSessionManager(settings, websocket, store)

    try:
        while True:
            data = await websocket.receive_json()
            await manager.handle_message(data)
    except WebSocketDisconnect:
        logger.info("browser_disconnected", profile=manager.profile_name)
    except Exception:
        logger.exception("websocket_handler_error")
    finally:
        await manager.stop()
