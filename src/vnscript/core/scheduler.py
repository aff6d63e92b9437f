"""Cancelable timer scheduling used by the playback controller."""
from __future__ import annotations

import asyncio
import heapq
from dataclasses import dataclass, field
from typing import Callable, List, Protocol


class TimerHandle(Protocol):
    """Anything returned by a scheduler that can be cancelled."""

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Schedules a zero-argument callback after a delay in seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


@dataclass(order=True)
class _ManualTimer:
    due: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler driven by an explicit virtual clock."""

    def __init__(self) -> None:
        self._now = 0.0
        self._sequence = 0
        self._queue: List[_ManualTimer] = []

    @property
    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        """Queue the callback to run once the clock passes now + delay."""
        self._sequence += 1
        timer = _ManualTimer(due=self._now + max(0.0, delay), sequence=self._sequence, callback=callback)
        heapq.heappush(self._queue, timer)
        return timer

    def pending(self) -> int:
        """Return the number of timers that are still scheduled."""
        return sum(1 for timer in self._queue if not timer.cancelled)

    def advance_time(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in order. Returns the fire count."""
        target = self._now + max(0.0, seconds)
        fired = 0
        while self._queue and self._queue[0].due <= target:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = timer.due
            timer.callback()
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self, limit: int = 10_000) -> int:
        """Fire timers until none remain or ``limit`` callbacks have run."""
        fired = 0
        while fired < limit:
            live = [timer for timer in self._queue if not timer.cancelled]
            if not live:
                break
            next_due = min(timer.due for timer in live)
            fired += self.advance_time(next_due - self._now)
        return fired


class AsyncioScheduler:
    """Adapter that schedules callbacks on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), callback)
