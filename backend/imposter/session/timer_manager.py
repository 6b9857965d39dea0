"""Own the single live countdown of every room."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import structlog

from imposter.logic.timer import DEFAULT_TICK_SECONDS, PhaseTimer

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from imposter.logic.enums import TimedPhase

    # (room_code, phase, remaining_seconds)
    TickHandler = Callable[[str, TimedPhase, int], Awaitable[None]]
    # (room_code, phase)
    ExpireHandler = Callable[[str, TimedPhase], Awaitable[None]]

logger = structlog.get_logger()


class _RoomTimer(NamedTuple):
    phase: TimedPhase
    timer: PhaseTimer


class TimerManager:
    """At most one timer per room; starting a new one cancels the previous.

    No other component holds timer handles. Any transition that makes a
    running timer obsolete must call ``clear`` (or ``start`` a replacement)
    before its effects become visible, so a stale expiry can never fire
    into a phase it does not belong to.
    """

    def __init__(self, *, tick_seconds: float = DEFAULT_TICK_SECONDS) -> None:
        self._tick_seconds = tick_seconds
        self._timers: dict[str, _RoomTimer] = {}

    def start(
        self,
        room_code: str,
        phase: TimedPhase,
        duration: int,
        on_tick: TickHandler,
        on_expire: ExpireHandler,
    ) -> None:
        self.clear(room_code)
        entry = _RoomTimer(phase, PhaseTimer(duration, tick_seconds=self._tick_seconds))
        self._timers[room_code] = entry

        async def tick(remaining: int) -> None:
            await on_tick(room_code, phase, remaining)

        async def expire() -> None:
            # deregister first so the expiry handler may start the next timer
            if self._timers.get(room_code) is entry:
                del self._timers[room_code]
            await on_expire(room_code, phase)

        entry.timer.start(tick, expire)
        logger.debug("timer started", room_code=room_code, phase=phase, duration=duration)

    def clear(self, room_code: str) -> bool:
        """Cancel the room's timer. Safe to call when there is none."""
        entry = self._timers.pop(room_code, None)
        if entry is None:
            return False
        entry.timer.cancel()
        logger.debug("timer cleared", room_code=room_code, phase=entry.phase)
        return True

    def has_timer(self, room_code: str) -> bool:
        return room_code in self._timers

    def remaining(self, room_code: str) -> int | None:
        entry = self._timers.get(room_code)
        return entry.timer.remaining if entry is not None else None

    def timer_phase(self, room_code: str) -> TimedPhase | None:
        entry = self._timers.get(room_code)
        return entry.phase if entry is not None else None

    def cancel_all(self) -> None:
        for room_code in list(self._timers):
            self.clear(room_code)

    @property
    def active_count(self) -> int:
        return len(self._timers)
