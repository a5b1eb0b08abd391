"""Cancelable asyncio timers owned by the component that starts them."""

import asyncio
import inspect
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()

TimerCallback = Callable[[], Awaitable[None] | None]


async def _invoke(callback: TimerCallback) -> None:
    result = callback()
    if inspect.isawaitable(result):
        await result


class PeriodicTicker:
    """Calls ``callback`` every ``interval`` seconds until stopped.

    A failing callback is logged and the ticker keeps running.

    Args:
        interval: Seconds between calls.
        callback: Sync or async callable.
        name: Label used in log events.
    """

    def __init__(self, interval: float, callback: TimerCallback, name: str = "ticker"):
        self.interval = interval
        self._callback = callback
        self.name = name
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await _invoke(self._callback)
                except Exception:
                    logger.exception("ticker_callback_error", ticker=self.name)
        except asyncio.CancelledError:
            pass


class DelayedCall:
    """Runs ``callback`` once after ``delay`` seconds unless cancelled first."""

    def __init__(self, delay: float, callback: TimerCallback, name: str = "delayed_call"):
        self.delay = delay
        self._callback = callback
        self.name = name
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "DelayedCall":
        self._task = asyncio.create_task(self._run())
        return self

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self.delay)
            await _invoke(self._callback)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("delayed_call_error", timer=self.name)
