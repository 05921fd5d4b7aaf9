from __future__ import annotations

from dataclasses import dataclass
from threading import Event, Lock, Thread

from . import db
from .duration import format_duration
from .timer import DebounceTimer, TimerSnapshot
from .tracker import AggregateStateTracker, ObjectObservation
from .watchset import MonitoredIdentifier, WatchSet

IGNORED = "ignored"
STARTED = "started"
CANCELLED = "cancelled"
UNCHANGED = "unchanged"


@dataclass(frozen=True)
class EngineStatus:
    all_zero: bool
    duration_s: float
    observations: dict[MonitoredIdentifier, ObjectObservation]
    timer: TimerSnapshot


class ReconcileEngine:
    """Turns Deployment change notifications into timer start/cancel decisions.

    All tracker and timer transitions happen under one lock, one
    reconciliation cycle at a time.
    """

    def __init__(self, watch_set: WatchSet, tracker: AggregateStateTracker, timer: DebounceTimer, duration_s: float):
        self.watch_set = watch_set
        self.tracker = tracker
        self.timer = timer
        self.duration_s = duration_s
        self._lock = Lock()

    def on_change(self, ident: MonitoredIdentifier) -> str:
        """Handle a create/update/delete notification for one Deployment."""
        if ident not in self.watch_set:
            return IGNORED
        return self._reconcile()

    def resync(self) -> str:
        """Re-evaluate the whole watch set without a triggering notification."""
        return self._reconcile()

    def _reconcile(self) -> str:
        with self._lock:
            previous = self.tracker.all_zero
            all_zero, changed = self.tracker.refresh()
            if not changed:
                return UNCHANGED
            try:
                return self._transition(all_zero)
            except Exception:
                # A replayed event must see this change again; start/cancel are idempotent.
                self.tracker.restore(previous)
                raise

    def _transition(self, all_zero: bool) -> str:
        if all_zero:
            started = self.timer.start(self.duration_s)
            db.log_event("INFO", "All watched deployments scaled to 0")
            if started:
                db.log_event("INFO", f"Timer started ({format_duration(self.duration_s)})")
            return STARTED
        canceled = self.timer.cancel()
        db.log_event("INFO", "Watched deployment scaled up")
        if canceled:
            db.log_event("INFO", "Timer canceled")
        return CANCELLED

    def status(self) -> EngineStatus:
        with self._lock:
            return EngineStatus(
                all_zero=self.tracker.all_zero,
                duration_s=self.duration_s,
                observations=self.tracker.observations(),
                timer=self.timer.snapshot(),
            )


class ResyncLoop:
    """Periodically re-reads the watch set so missed watch events cannot wedge the state."""

    def __init__(self, engine: ReconcileEngine, interval_s: int):
        self.engine = engine
        self.interval_s = max(1, int(interval_s))
        self._stop = Event()
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()

    def _loop(self) -> None:
        db.log_event("INFO", f"Resync loop started (every {self.interval_s}s)")
        while not self._stop.wait(self.interval_s):
            try:
                self.engine.resync()
            except Exception as e:
                db.log_event("ERROR", f"Resync failed: {type(e).__name__}: {e}")
