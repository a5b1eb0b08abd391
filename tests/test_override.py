"""Tests for the parental override gate and the attention alert."""

import asyncio
import random
from unittest.mock import AsyncMock

from kids_gate.gate import AttentionAlert, ParentalOverrideGate
from kids_gate.gate.override import AUTH_FAILED, AUTH_UNAVAILABLE, WRONG_ANSWER
from kids_gate.models.gate import OverridePhase


class TestParentalOverrideGate:
    def test_problem_ranges(self):
        for seed in range(50):
            gate = ParentalOverrideGate(rng=random.Random(seed))
            assert 12 <= gate.num1 <= 19
            assert 3 <= gate.num2 <= 9
            assert gate.phase == OverridePhase.LOCKED

    def test_wrong_answer_keeps_problem_and_clears_response(self):
        gate = ParentalOverrideGate(rng=random.Random(4))
        problem = (gate.num1, gate.num2)
        assert not gate.submit_answer(str(gate.num1 * gate.num2 + 1))
        assert gate.phase == OverridePhase.LOCKED
        assert gate.response == ""
        assert gate.auth_error == WRONG_ANSWER
        assert (gate.num1, gate.num2) == problem

    def test_correct_answer_unlocks(self):
        gate = ParentalOverrideGate(rng=random.Random(4))
        gate.submit_answer("nope")
        assert gate.submit_answer(f" {gate.num1 * gate.num2} ")
        assert gate.is_unlocked
        assert gate.auth_error is None

    def test_no_retry_limit(self):
        gate = ParentalOverrideGate(rng=random.Random(9))
        for _ in range(20):
            gate.submit_answer("0")
        assert gate.submit_answer(str(gate.num1 * gate.num2))

    def test_device_auth(self):
        gate = ParentalOverrideGate()
        assert not gate.report_device_auth(False)
        assert gate.auth_error == AUTH_FAILED
        assert not gate.report_device_auth(True, available=False)
        assert gate.auth_error == AUTH_UNAVAILABLE
        assert gate.report_device_auth(True)
        assert gate.is_unlocked

    def test_unlocked_is_terminal_until_rearmed(self):
        gate = ParentalOverrideGate()
        gate.report_device_auth(True)
        assert gate.submit_answer("0")
        assert gate.is_unlocked
        gate.rearm()
        assert gate.phase == OverridePhase.LOCKED
        assert 12 <= gate.num1 <= 19

    def test_snapshot_hides_problem_when_unlocked(self):
        gate = ParentalOverrideGate()
        assert gate.snapshot()["problem"] == gate.problem_text
        gate.report_device_auth(True)
        snapshot = gate.snapshot()
        assert snapshot["phase"] == "unlocked"
        assert snapshot["problem"] is None


class TestAttentionAlert:
    async def test_shows_then_hides(self):
        on_change = AsyncMock()
        alert = AttentionAlert(on_change, delay_seconds=0.01, duration_seconds=0.1)
        alert.trigger()
        assert not alert.visible
        await asyncio.sleep(0.05)
        assert alert.visible
        await asyncio.sleep(0.15)
        assert not alert.visible
        assert [c.args[0] for c in on_change.await_args_list] == [True, False]

    async def test_cancel_before_show(self):
        on_change = AsyncMock()
        alert = AttentionAlert(on_change, delay_seconds=0.05, duration_seconds=0.05)
        alert.trigger()
        await alert.cancel()
        await asyncio.sleep(0.1)
        assert not alert.visible
        on_change.assert_not_awaited()

    async def test_cancel_while_visible_hides(self):
        on_change = AsyncMock()
        alert = AttentionAlert(on_change, delay_seconds=0.0, duration_seconds=10.0)
        alert.trigger()
        await asyncio.sleep(0.01)
        assert alert.visible
        await alert.cancel()
        assert not alert.visible
        on_change.assert_awaited_with(False)

    async def test_sync_callback(self):
        seen = []
        alert = AttentionAlert(seen.append, delay_seconds=0.0, duration_seconds=0.0)
        alert.trigger()
        await asyncio.sleep(0.05)
        assert seen == [True, False]
