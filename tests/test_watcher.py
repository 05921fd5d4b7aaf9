from types import SimpleNamespace

import pytest
from kubernetes.client import ApiException

from ksz import db
from ksz.reconciler import IGNORED, STARTED
from ksz.watcher import DeploymentWatcher
from ksz.watchset import MonitoredIdentifier, parse_watch_set


def _listing(rv="100"):
    return SimpleNamespace(metadata=SimpleNamespace(resource_version=rv), items=[])


def _event(ns, name, rv="101", kind="MODIFIED"):
    return {"type": kind, "object": SimpleNamespace(metadata=SimpleNamespace(namespace=ns, name=name, resource_version=rv))}


class FakeAppsApi:
    def __init__(self, list_results=None):
        self.list_results = list(list_results or [])
        self.list_calls = []

    def _next(self, **kwargs):
        self.list_calls.append(kwargs)
        result = self.list_results.pop(0) if self.list_results else _listing()
        if isinstance(result, Exception):
            raise result
        return result

    def list_namespaced_deployment(self, namespace, **kwargs):
        return self._next(namespace=namespace, **kwargs)

    def list_deployment_for_all_namespaces(self, **kwargs):
        return self._next(**kwargs)


class FakeEngine:
    def __init__(self):
        self.changes = []
        self.resyncs = 0

    def on_change(self, ident):
        self.changes.append(ident)
        return STARTED

    def resync(self):
        self.resyncs += 1
        return STARTED


class ScriptedWatch:
    """Each instance plays the next script entry: a list of events or an exception."""

    def __init__(self, scripts, watcher_ref):
        self.scripts = scripts
        self.watcher_ref = watcher_ref
        self.stream_kwargs = None
        self.stopped = False

    def stream(self, func, **kwargs):
        self.stream_kwargs = kwargs
        script = self.scripts.pop(0) if self.scripts else None
        if script is None:
            self.watcher_ref[0]._stop.set()
            return
        if isinstance(script, Exception):
            raise script
        yield from script

    def stop(self):
        self.stopped = True


def _make(raw, scripts, list_results=None):
    ws, _ = parse_watch_set(raw)
    api = FakeAppsApi(list_results)
    engine = FakeEngine()
    ref = []
    watches = []

    def factory():
        w = ScriptedWatch(scripts, ref)
        watches.append(w)
        return w

    w = DeploymentWatcher(api, engine, ws, watch_factory=factory)
    ref.append(w)
    w._backoff = lambda seconds: seconds  # no sleeping in tests
    return w, api, engine, watches


def test_single_namespace_watch_set_is_namespaced():
    w, api, _, _ = _make("apps/a,apps/b", [])
    assert w.namespace == "apps"
    w.run_forever()
    assert api.list_calls[0] == {"namespace": "apps"}


def test_multi_namespace_watches_cluster_wide():
    w, api, _, _ = _make("a/b,c/d", [])
    assert w.namespace is None
    w.run_forever()
    assert api.list_calls[0] == {}


def test_events_feed_engine_and_track_resource_version():
    scripts = [[_event("a", "b", rv="101"), _event("x", "y", rv="102")], [_event("c", "d", rv="103")]]
    w, api, engine, watches = _make("a/b,c/d", scripts)
    w.run_forever()

    assert engine.resyncs == 1
    assert engine.changes == [MonitoredIdentifier("a", "b"), MonitoredIdentifier("x", "y"), MonitoredIdentifier("c", "d")]
    assert watches[0].stream_kwargs["resource_version"] == "100"
    assert watches[1].stream_kwargs["resource_version"] == "102"
    assert all(x.stopped for x in watches)
    assert not w.ready.is_set()


def test_failed_event_is_redelivered_from_last_handled_version():
    scripts = [[_event("a", "b", rv="101")], [_event("a", "b", rv="101")]]
    w, _, engine, watches = _make("a/b", scripts)
    failures = []
    orig = engine.on_change

    def flaky_on_change(ident):
        if not failures:
            failures.append(ident)
            raise RuntimeError("event log unavailable")
        return orig(ident)

    engine.on_change = flaky_on_change
    w.run_forever()

    assert watches[1].stream_kwargs["resource_version"] == "100"
    assert engine.changes == [MonitoredIdentifier("a", "b")]


def test_ready_after_initial_list():
    seen = {}
    w, _, engine, _ = _make("a/b", [])
    orig = engine.resync

    def resync():
        seen["ready_before"] = w.ready.is_set()
        return orig()

    engine.resync = resync
    w.watch_factory = lambda: SimpleNamespace(stream=lambda *a, **k: iter(()), stop=lambda: w._stop.set())
    w.run_forever()
    assert seen["ready_before"] is False
    assert any("Watching deployments" in e["message"] for e in db.latest_events())


def test_gone_triggers_relist():
    scripts = [ApiException(status=410, reason="Gone"), [_event("a", "b", rv="301")]]
    w, api, engine, watches = _make("a/b,c/d", scripts, list_results=[_listing("100"), _listing("300")])
    w.run_forever()
    assert engine.resyncs == 2
    assert watches[1].stream_kwargs["resource_version"] == "300"


def test_initial_list_retries_then_succeeds():
    w, api, engine, _ = _make("a/b", [], list_results=[ApiException(status=500, reason="boom"), RuntimeError("x"), _listing()])
    w.run_forever()
    assert len(api.list_calls) == 3
    assert engine.resyncs == 1


@pytest.mark.parametrize("status", [401, 403])
def test_denied_initial_list_stops(status):
    w, api, engine, watches = _make("a/b", [], list_results=[ApiException(status=status, reason="denied")])
    w.run_forever()
    assert watches == []
    assert engine.resyncs == 0
    assert not w.ready.is_set()


def test_denied_watch_stops():
    w, api, engine, watches = _make("a/b", [ApiException(status=403, reason="Forbidden")])
    w.run_forever()
    assert len(watches) == 1
    assert not w.ready.is_set()


def test_transient_watch_error_backs_off_and_continues():
    scripts = [ApiException(status=500, reason="oops"), ValueError("bad chunk"), [_event("a", "b")]]
    w, _, engine, watches = _make("a/b", scripts)
    w.run_forever()
    assert len(watches) == 4
    assert engine.changes == [MonitoredIdentifier("a", "b")]


def test_handle_event_skips_objects_without_metadata():
    w, _, engine, _ = _make("a/b", [])
    assert w.handle_event({"type": "MODIFIED", "object": None}) is None
    assert engine.changes == []


def test_handle_event_passes_unwatched_to_engine_filter():
    from ksz.reconciler import ReconcileEngine
    from ksz.timer import DebounceTimer
    from ksz.tracker import AggregateStateTracker

    ws, _ = parse_watch_set("a/b")
    engine = ReconcileEngine(ws, AggregateStateTracker(ws, lambda i: (0, True)), DebounceTimer(lambda: None, scheduler=lambda d, f: None), 10)
    w = DeploymentWatcher(FakeAppsApi(), engine, ws)
    assert w.handle_event(_event("other", "dep")) == IGNORED
    assert w.handle_event(_event("a", "b")) == STARTED


def test_stop_interrupts_active_watch():
    w, _, _, _ = _make("a/b", [])
    active = SimpleNamespace(stopped=False)
    active.stop = lambda: setattr(active, "stopped", True)
    w._active = active
    w.stop()
    assert active.stopped
    assert w._stop.is_set()
