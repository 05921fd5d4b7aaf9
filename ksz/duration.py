from __future__ import annotations

import re
import threading

DEFAULT_TIMER_DURATION_S = 3600.0

# Largest duration Go accepts (int64 nanoseconds), capped by what threading.Timer can wait.
MAX_DURATION_S = min((2**63 - 1) * 1e-9, threading.TIMEOUT_MAX)

# Seconds per unit, using the unit names Go's time.ParseDuration accepts.
_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # micro sign
    "μs": 1e-6,  # greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT_RE = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]+)")


def parse_duration(raw: str) -> float:
    """Parse a duration string such as "1h30m", "90s" or "1.5h" into seconds.

    The grammar is a possibly signed sequence of decimal numbers, each with an
    optional fraction and a unit suffix (ns, us, ms, s, m, h). "0" is accepted
    on its own. Raises ValueError for anything else.
    """
    s = raw.strip()
    orig = s
    sign = 1.0
    if s[:1] in {"+", "-"}:
        if s[0] == "-":
            sign = -1.0
        s = s[1:]

    if s == "0":
        return 0.0
    if not s:
        raise ValueError(f"invalid duration {orig!r}")

    total = 0.0
    pos = 0
    while pos < len(s):
        m = _COMPONENT_RE.match(s, pos)
        if not m:
            raise ValueError(f"invalid duration {orig!r}")
        whole, frac, unit = m.group(1), m.group(2), m.group(3)
        if not whole and not frac:
            # ".s" or a bare unit
            raise ValueError(f"invalid duration {orig!r}")
        if unit not in _UNITS:
            raise ValueError(f"unknown unit {unit!r} in duration {orig!r}")
        value = float(f"{whole or '0'}.{frac or '0'}")
        total += value * _UNITS[unit]
        pos = m.end()

    if total > MAX_DURATION_S:
        raise ValueError(f"duration {orig!r} out of range")
    return sign * total


def resolve_timer_duration(raw: str | None) -> tuple[float, str | None]:
    """Return (seconds, problem) for a configured timer duration.

    Unset or malformed values fall back to one hour; ``problem`` describes why
    the fallback was used and is None when ``raw`` parsed cleanly.
    """
    if raw is None or not raw.strip():
        return DEFAULT_TIMER_DURATION_S, "TIMER_DURATION not set, using default of 1h"
    try:
        return parse_duration(raw), None
    except ValueError as e:
        return DEFAULT_TIMER_DURATION_S, f"Invalid TIMER_DURATION ({e}), using default of 1h"


def format_duration(seconds: float) -> str:
    """Render seconds in the same grammar, e.g. 5400 -> "1h30m0s"."""
    if seconds == 0:
        return "0s"
    sign = "-" if seconds < 0 else ""
    rest = abs(seconds)
    hours = int(rest // 3600)
    rest -= hours * 3600
    minutes = int(rest // 60)
    rest -= minutes * 60
    secs = f"{rest:.3f}".rstrip("0").rstrip(".")
    out = ""
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return f"{sign}{out}{secs}s"
