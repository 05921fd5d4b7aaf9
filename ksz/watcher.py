from __future__ import annotations

import random
import threading
from typing import Any, Callable

from kubernetes import watch
from kubernetes.client import ApiException, AppsV1Api

from . import db
from .reconciler import ReconcileEngine
from .watchset import MonitoredIdentifier, WatchSet

MAX_BACKOFF_S = 30


class DeploymentWatcher:
    """List-then-watch Deployments and feed every event to the engine.

    Events for Deployments outside the watch set are passed through too; the
    engine filters them. When the whole watch set lives in one namespace only
    that namespace is watched, so a namespaced Role is enough.
    """

    def __init__(
        self,
        api: AppsV1Api,
        engine: ReconcileEngine,
        watch_set: WatchSet,
        watch_factory: Callable[[], Any] = watch.Watch,
        watch_timeout_s: int = 300,
    ):
        self.api = api
        self.engine = engine
        self.watch_factory = watch_factory
        self.watch_timeout_s = watch_timeout_s
        namespaces = watch_set.namespaces()
        if len(namespaces) == 1:
            self.namespace: str | None = next(iter(namespaces))
            self._list = api.list_namespaced_deployment
            self._list_kwargs: dict[str, Any] = {"namespace": self.namespace}
        else:
            self.namespace = None
            self._list = api.list_deployment_for_all_namespaces
            self._list_kwargs = {}
        self.ready = threading.Event()
        self._stop = threading.Event()
        self._active: Any = None
        self._active_lock = threading.Lock()
        self._thr: threading.Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = threading.Thread(target=self.run_forever, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()
        with self._active_lock:
            active = self._active
        if active is not None:
            active.stop()

    def _relist(self) -> str | None:
        """List Deployments, re-evaluate everything, return the list resourceVersion."""
        listing = self._list(**self._list_kwargs)
        self.engine.resync()
        return getattr(getattr(listing, "metadata", None), "resource_version", None)

    def _denied(self, exc: ApiException, during: str) -> bool:
        if exc.status in {401, 403}:
            db.log_event(
                "ERROR",
                f"Kubernetes API access denied during {during} (status={exc.status}). "
                "Check RBAC for get/list/watch on deployments.",
            )
            self.ready.clear()
            return True
        return False

    def _backoff(self, seconds: float) -> float:
        self._stop.wait(timeout=seconds * (0.5 + random.random()))
        return min(seconds * 2, MAX_BACKOFF_S)

    def handle_event(self, event: dict[str, Any]) -> str | None:
        obj = event.get("object")
        meta = getattr(obj, "metadata", None)
        if meta is None or not meta.name or not meta.namespace:
            return None
        return self.engine.on_change(MonitoredIdentifier(namespace=meta.namespace, name=meta.name))

    def run_forever(self) -> None:
        scope = f"namespace {self.namespace}" if self.namespace else "all namespaces"
        resource_version: str | None = None
        backoff = 1.0

        while not self._stop.is_set():
            try:
                resource_version = self._relist()
                self.ready.set()
                db.log_event("INFO", f"Watching deployments in {scope} from resourceVersion {resource_version}")
                break
            except ApiException as e:
                if self._denied(e, "initial list"):
                    return
                db.log_event("ERROR", f"Initial deployment list failed: HTTP {e.status} {e.reason}")
            except Exception as e:
                db.log_event("ERROR", f"Initial deployment list failed: {type(e).__name__}: {e}")
            backoff = self._backoff(backoff)

        backoff = 1.0
        while not self._stop.is_set():
            w = self.watch_factory()
            with self._active_lock:
                self._active = w
            try:
                for event in w.stream(
                    self._list,
                    resource_version=resource_version,
                    timeout_seconds=self.watch_timeout_s,
                    **self._list_kwargs,
                ):
                    if self._stop.is_set():
                        break
                    self.handle_event(event)
                    # Only advance past events the engine has taken.
                    meta = getattr(event.get("object"), "metadata", None)
                    if meta is not None and getattr(meta, "resource_version", None):
                        resource_version = meta.resource_version
                backoff = 1.0
            except ApiException as e:
                if e.status == 410:
                    # resourceVersion compacted away; start over from a fresh list.
                    db.log_event("WARN", "Watch resource version expired, re-listing")
                    try:
                        resource_version = self._relist()
                    except ApiException as relist_exc:
                        if self._denied(relist_exc, "re-list"):
                            return
                        db.log_event("ERROR", f"Re-list failed: HTTP {relist_exc.status} {relist_exc.reason}")
                        resource_version = None
                    except Exception as relist_exc:
                        db.log_event("ERROR", f"Re-list failed: {type(relist_exc).__name__}: {relist_exc}")
                        resource_version = None
                    continue
                if self._denied(e, "watch"):
                    return
                db.log_event("ERROR", f"Deployment watch failed: HTTP {e.status} {e.reason}")
                backoff = self._backoff(backoff)
            except Exception as e:
                db.log_event("ERROR", f"Deployment watch failed: {type(e).__name__}: {e}")
                backoff = self._backoff(backoff)
            finally:
                w.stop()
                with self._active_lock:
                    if self._active is w:
                        self._active = None

        self.ready.clear()
