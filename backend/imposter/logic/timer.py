"""
Per-room phase countdown.

A PhaseTimer ticks immediately with the full duration, then once per tick
interval with the decremented remainder (zero included), and calls its
expiry callback exactly once after the zero tick. It never restarts itself.
Cancelling stops both ticks and expiry.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    TickCallback = Callable[[int], Awaitable[None]]
    ExpireCallback = Callable[[], Awaitable[None]]

DEFAULT_TICK_SECONDS = 1.0


class PhaseTimer:
    def __init__(self, duration: int, *, tick_seconds: float = DEFAULT_TICK_SECONDS) -> None:
        if duration < 0:
            raise ValueError(f"duration must be non-negative, got {duration}")
        self._duration = duration
        self._remaining = duration
        self._tick_seconds = tick_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, on_tick: TickCallback, on_expire: ExpireCallback) -> None:
        self.cancel()
        self._remaining = self._duration
        self._task = asyncio.create_task(self._run(on_tick, on_expire))

    def cancel(self) -> None:
        if self._task is not None and not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()
        self._task = None

    async def _run(self, on_tick: TickCallback, on_expire: ExpireCallback) -> None:
        try:
            await on_tick(self._remaining)
            while self._remaining > 0:
                await asyncio.sleep(self._tick_seconds)
                self._remaining -= 1
                await on_tick(self._remaining)
            await on_expire()
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("phase timer callback failed")
