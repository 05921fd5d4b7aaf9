from __future__ import annotations

from dataclasses import dataclass


class WatchSetError(ValueError):
    """Raised when no usable namespace/name entries were configured."""


@dataclass(frozen=True, order=True)
class MonitoredIdentifier:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, raw: str) -> MonitoredIdentifier:
        entry = raw.strip()
        if entry.count("/") != 1:
            raise ValueError(f"Invalid deployment format {entry!r}. Use namespace/name")
        ns, name = (p.strip() for p in entry.split("/"))
        if not ns or not name:
            raise ValueError(f"Invalid deployment format {entry!r}. Use namespace/name")
        return cls(namespace=ns, name=name)


@dataclass(frozen=True)
class WatchSet:
    """Immutable set of Deployments to monitor, fixed for the process lifetime."""

    members: frozenset[MonitoredIdentifier]

    def __contains__(self, ident: object) -> bool:
        return ident in self.members

    def __iter__(self):
        # Sorted so lookups and status output are stable.
        return iter(sorted(self.members))

    def __len__(self) -> int:
        return len(self.members)

    def namespaces(self) -> set[str]:
        return {m.namespace for m in self.members}


def parse_watch_set(raw: str | None) -> tuple[WatchSet, list[str]]:
    """Parse a comma-separated ``namespace/name`` list.

    Returns (watch_set, rejected_entries). Malformed entries are skipped and
    reported back to the caller; an empty result raises WatchSetError.
    """
    if raw is None or not raw.strip():
        raise WatchSetError("WATCHED_DEPLOYMENTS environment variable is required")

    members: set[MonitoredIdentifier] = set()
    rejected: list[str] = []
    for entry in raw.split(","):
        if not entry.strip():
            continue
        try:
            members.add(MonitoredIdentifier.parse(entry))
        except ValueError:
            rejected.append(entry.strip())

    if not members:
        raise WatchSetError(f"No valid namespace/name entries in WATCHED_DEPLOYMENTS={raw!r}")
    return WatchSet(frozenset(members)), rejected
