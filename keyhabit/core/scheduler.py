"""Deferred work: a task queue drained after each key, plus timers.

Everything runs on the caller's thread. The host calls ``run_pending()``
after the synchronous handler returns, and again whenever it wakes up,
so deferred work never reorders or blocks input handling.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from collections import deque
from typing import Callable, Optional

import keyhabit.log  # registers TRACE level and logger.trace()

logger = logging.getLogger(__name__)


class TimerHandle:
    __slots__ = ("when", "callback", "cancelled")

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "armed"
        return f"<TimerHandle when={self.when:.3f} {state}>"


class TaskQueue:
    """Fire-and-forget tasks and cancellable timers for a single thread."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._ready: deque[Callable[[], None]] = deque()
        self._timers: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def schedule(self, callback: Callable[[], None]) -> None:
        """Run *callback* on the next ``run_pending()``."""
        self._ready.append(callback)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run *callback* once *delay* seconds have passed."""
        handle = TimerHandle(self.clock() + delay, callback)
        heapq.heappush(self._timers, (handle.when, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        live_timers = sum(1 for _, _, h in self._timers if not h.cancelled)
        return len(self._ready) + live_timers

    def next_deadline(self) -> Optional[float]:
        """Seconds until the earliest live timer, or None."""
        self._drop_cancelled()
        if not self._timers:
            return None
        return max(0.0, self._timers[0][0] - self.clock())

    def run_pending(self) -> int:
        """Run queued tasks, then every timer that is due. Returns count run.

        Tasks queued while draining wait for the next call.
        """
        ran = 0
        for _ in range(len(self._ready)):
            self._run(self._ready.popleft())
            ran += 1

        now = self.clock()
        while self._timers and self._timers[0][0] <= now:
            _, _, handle = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            handle.cancelled = True
            self._run(handle.callback)
            ran += 1
        return ran

    def clear(self) -> None:
        self._ready.clear()
        for _, _, handle in self._timers:
            handle.cancel()
        self._timers.clear()

    def _drop_cancelled(self) -> None:
        while self._timers and self._timers[0][2].cancelled:
            heapq.heappop(self._timers)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Deferred task %r failed", callback)


class IdleTimer:
    """At most one live deferred action, re-armed on every activity."""

    def __init__(self, tasks: TaskQueue, action: Callable[[], None]):
        self.tasks = tasks
        self.action = action
        self._handle: Optional[TimerHandle] = None

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def arm(self, delay: float) -> None:
        self.cancel()
        self._handle = self.tasks.call_later(delay, self._fire)
        logger.trace("Idle timer armed for %.3fs", delay)  # type: ignore[attr-defined]

    def _fire(self) -> None:
        self._handle = None
        logger.debug("Idle timer expired")
        self.action()
