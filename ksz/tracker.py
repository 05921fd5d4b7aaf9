from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple

from . import db
from .db import utc_now
from .watchset import MonitoredIdentifier, WatchSet

# lookup(identifier) -> (desired_replicas or None, ok)
Lookup = Callable[[MonitoredIdentifier], Tuple[Optional[int], bool]]


@dataclass(frozen=True)
class ObjectObservation:
    desired_replicas: int | None
    ok: bool
    observed_at: str
    # Set while the most recent lookup is failing; desired_replicas is then stale.
    error: str | None = None

    @property
    def active(self) -> bool:
        return self.desired_replicas is not None and self.desired_replicas > 0


class AggregateStateTracker:
    """Believed desired replica count per watched Deployment, and their logical AND.

    Not thread-safe on its own: the ReconcileEngine serializes every call.
    """

    def __init__(self, watch_set: WatchSet, lookup: Lookup):
        self.watch_set = watch_set
        self.lookup = lookup
        self._observations: dict[MonitoredIdentifier, ObjectObservation] = {}
        self._all_zero = False

    @property
    def all_zero(self) -> bool:
        return self._all_zero

    def observations(self) -> dict[MonitoredIdentifier, ObjectObservation]:
        return dict(self._observations)

    def refresh(self) -> tuple[bool, bool]:
        """Re-read every watched Deployment and recompute the aggregate.

        Returns (all_zero, changed) where ``changed`` compares against the
        previous refresh. A failed lookup keeps the last good observation.
        """
        for ident in self.watch_set:
            self._observe(ident)

        all_zero = not any(
            obs.active for ident, obs in self._observations.items() if ident in self.watch_set
        )
        changed = all_zero != self._all_zero
        self._all_zero = all_zero
        return all_zero, changed

    def restore(self, all_zero: bool) -> None:
        """Put back the aggregate a caller failed to act on, so the next refresh reports the change again."""
        self._all_zero = all_zero

    def _observe(self, ident: MonitoredIdentifier) -> None:
        try:
            desired, ok = self.lookup(ident)
            err = None if ok else "lookup failed"
        except Exception as e:
            desired, ok, err = None, False, f"{type(e).__name__}: {e}"

        if ok:
            self._observations[ident] = ObjectObservation(desired_replicas=desired, ok=True, observed_at=utc_now())
            return

        db.log_event("WARN", f"Failed to get deployment, keeping last observation ({err})", ident.namespace, ident.name)
        prev = self._observations.get(ident)
        if prev is not None:
            self._observations[ident] = replace(prev, ok=False, error=err)
