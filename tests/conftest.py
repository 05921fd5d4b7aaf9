import dataclasses
import sys

import pytest

# Ensure project root is importable (so `import main` works reliably across environments)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from ksz import db  # noqa: E402
from ksz.watchset import MonitoredIdentifier  # noqa: E402


@pytest.fixture(autouse=True)
def event_db(tmp_path, monkeypatch):
    """Point the event log at an isolated sqlite file for every test."""
    monkeypatch.setattr(db, "settings", dataclasses.replace(db.settings, db_path=str(tmp_path / "events.db")))
    db.init_db()
    return db


class FakeLookup:
    """Lookup collaborator driven by a dict: ident -> replicas, or an Exception / False for failure."""

    def __init__(self, values=None):
        self.values = dict(values or {})
        self.calls = []

    def set(self, key, value):
        self.values[MonitoredIdentifier.parse(key)] = value

    def __call__(self, ident):
        self.calls.append(ident)
        value = self.values.get(ident)
        if isinstance(value, Exception):
            raise value
        if value is False:
            return None, False
        return value, True


class ManualScheduler:
    """Scheduling substrate that only fires when the test says so."""

    class Handle:
        def __init__(self, delay, fn):
            self.delay = delay
            self.fn = fn
            self.cancelled = False

        def cancel(self):
            self.cancelled = True

    def __init__(self):
        self.handles = []

    def __call__(self, delay, fn):
        h = self.Handle(delay, fn)
        self.handles.append(h)
        return h

    @property
    def last(self):
        return self.handles[-1]


@pytest.fixture
def lookup():
    return FakeLookup()


@pytest.fixture
def scheduler():
    return ManualScheduler()
