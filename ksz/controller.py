from __future__ import annotations

from typing import Any, Callable

from . import db
from .action import ActionTrigger, DryRunAction, PowerStateAction
from .duration import format_duration, resolve_timer_duration
from .reconciler import EngineStatus, ReconcileEngine, ResyncLoop
from .settings import Settings
from .timer import DebounceTimer, Scheduler, thread_scheduler
from .tracker import AggregateStateTracker, Lookup
from .watchset import WatchSet, parse_watch_set


class Controller:
    """Owns one engine plus the background loops that feed it."""

    def __init__(
        self,
        cfg: Settings,
        lookup: Lookup,
        watcher_factory: Callable[[ReconcileEngine, WatchSet], Any] | None = None,
        perform: Callable[[], None] | None = None,
        scheduler: Scheduler = thread_scheduler,
    ):
        self.settings = cfg
        # Fatal: raises WatchSetError when nothing usable is configured.
        self.watch_set, rejected = parse_watch_set(cfg.watched_deployments)
        for entry in rejected:
            db.log_event("ERROR", f"Invalid deployment format {entry!r}. Use namespace/name")

        # Parsed once; a bad value is reported here and never again.
        self.duration_s, problem = resolve_timer_duration(cfg.timer_duration)
        if problem:
            db.log_event("WARN" if cfg.timer_duration else "INFO", problem)

        if perform is None:
            action = PowerStateAction(cfg.power_state_path, cfg.power_state)
            perform = DryRunAction(action) if cfg.dry_run else action
        self.trigger = ActionTrigger(perform)

        self.tracker = AggregateStateTracker(self.watch_set, lookup)
        self.timer = DebounceTimer(self.trigger.execute, scheduler=scheduler)
        self.engine = ReconcileEngine(self.watch_set, self.tracker, self.timer, self.duration_s)
        self.resync_loop = ResyncLoop(self.engine, cfg.resync_interval_s) if cfg.resync_interval_s > 0 else None
        self.watcher = watcher_factory(self.engine, self.watch_set) if watcher_factory else None

    @property
    def ready(self) -> bool:
        if self.watcher is None:
            return True
        return self.watcher.ready.is_set()

    def start(self) -> None:
        members = ", ".join(str(m) for m in self.watch_set)
        db.log_event("INFO", f"Starting: watching {members}; timer {format_duration(self.duration_s)}")
        if self.watcher is not None:
            self.watcher.start()
        if self.resync_loop is not None:
            self.resync_loop.start()

    def stop(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
        if self.resync_loop is not None:
            self.resync_loop.stop()
        self.timer.shutdown()
        db.log_event("INFO", "Stopped")

    def status(self) -> EngineStatus:
        return self.engine.status()


def build_controller(cfg: Settings) -> Controller:
    """Production wiring against the real cluster."""
    from .kube_ops import DeploymentLookup, apps_api, load_kube_config
    from .watcher import DeploymentWatcher

    source = load_kube_config(cfg.kubeconfig)
    db.log_event("INFO", f"Kubernetes client configured ({source})")
    api = apps_api()
    return Controller(
        cfg,
        lookup=DeploymentLookup(api),
        watcher_factory=lambda engine, ws: DeploymentWatcher(api, engine, ws),
    )
