from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from threading import Lock, Timer
from typing import Any, Callable


class TimerState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    FIRED = "fired"


# scheduler(delay_s, fn) -> handle with .cancel()
Scheduler = Callable[[float, Callable[[], None]], Any]


def thread_scheduler(delay_s: float, fn: Callable[[], None]) -> Timer:
    t = Timer(max(0.0, delay_s), fn)
    t.daemon = True
    t.start()
    return t


@dataclass(frozen=True)
class TimerSnapshot:
    state: TimerState
    generation: int
    remaining_s: float | None
    fire_count: int


class DebounceTimer:
    """Cancellable one-shot delayed callback guarded by a generation token.

    Every start/cancel bumps ``generation``; a scheduled fire carries the
    generation it was armed with and does nothing unless it still matches.
    That makes cancel() race-free even if the scheduled task already woke up.
    """

    def __init__(
        self,
        callback: Callable[[], Any],
        scheduler: Scheduler = thread_scheduler,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.callback = callback
        self.scheduler = scheduler
        self.clock = clock
        self._lock = Lock()
        self._state = TimerState.IDLE
        self._generation = 0
        self._deadline: float | None = None
        self._handle: Any = None
        self._fire_count = 0

    @property
    def state(self) -> TimerState:
        with self._lock:
            return self._state

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def start(self, duration_s: float) -> bool:
        """Arm the timer. No-op (returns False) unless it is Idle."""
        with self._lock:
            if self._state is not TimerState.IDLE:
                return False
            token = self._generation + 1
            # Nothing changes unless the substrate accepted the task.
            handle = self.scheduler(duration_s, lambda: self._fire(token))
            self._generation = token
            self._state = TimerState.PENDING
            self._deadline = self.clock() + duration_s
            self._handle = handle
            return True

    def cancel(self) -> bool:
        """Disarm the timer. Returns False when there was nothing to cancel."""
        with self._lock:
            if self._state is TimerState.IDLE:
                return False
            self._generation += 1
            self._state = TimerState.IDLE
            self._deadline = None
            handle, self._handle = self._handle, None
        if handle is not None:
            # Best effort; a fire that already woke up is stopped by the token check.
            handle.cancel()
        return True

    def shutdown(self) -> None:
        self.cancel()

    def _fire(self, token: int) -> None:
        with self._lock:
            if token != self._generation or self._state is not TimerState.PENDING:
                return
            self._state = TimerState.FIRED
            self._deadline = None
            self._handle = None
            self._fire_count += 1
        try:
            self.callback()
        finally:
            with self._lock:
                if token == self._generation and self._state is TimerState.FIRED:
                    self._state = TimerState.IDLE

    def snapshot(self) -> TimerSnapshot:
        with self._lock:
            remaining = None
            if self._deadline is not None:
                remaining = max(0.0, self._deadline - self.clock())
            return TimerSnapshot(
                state=self._state,
                generation=self._generation,
                remaining_s=remaining,
                fire_count=self._fire_count,
            )
