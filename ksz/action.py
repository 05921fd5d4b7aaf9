from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from . import db


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    message: str


class PowerStateAction:
    """Suspend the host by writing a sleep state to the kernel power interface."""

    def __init__(self, path: str = "/sys/power/state", state: str = "mem"):
        self.path = path
        self.state = state

    def __call__(self) -> None:
        with open(self.path, "w", encoding="ascii") as f:
            f.write(self.state)

    def describe(self) -> str:
        return f"write {self.state!r} to {self.path}"


class DryRunAction:
    """Stand-in used with KSZ_DRY_RUN=true; records what would have happened."""

    def __init__(self, inner: PowerStateAction):
        self.inner = inner

    def __call__(self) -> None:
        db.log_event("INFO", f"Dry run: would {self.inner.describe()}")

    def describe(self) -> str:
        return f"dry run ({self.inner.describe()})"


class ActionTrigger:
    """Runs the quiesce action once per call and reports the outcome.

    Failures are logged, never raised: a broken action must not take the
    reconciler down, and it is not retried.
    """

    def __init__(self, perform: Callable[[], None]):
        self.perform = perform
        self.last_result: ActionResult | None = None

    def execute(self) -> ActionResult:
        db.log_event("INFO", "Grace period elapsed, sleeping server")
        try:
            self.perform()
        except Exception as e:
            result = ActionResult(ok=False, message=f"{type(e).__name__}: {e}")
            db.log_event("ERROR", f"Failed to sleep server: {result.message}")
        else:
            result = ActionResult(ok=True, message="Quiesce action completed")
            db.log_event("INFO", result.message)
        self.last_result = result
        return result
