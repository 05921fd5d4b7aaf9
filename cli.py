from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="kubesnooze CLI")
    p.add_argument("--api", default="http://localhost:8081", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("status", help="Show watched deployments, aggregate state and timer")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    sub.add_parser("resync", help="Re-read every watched deployment now")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "status":
        r = requests.get(f"{base}/status", timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "resync":
        r = requests.post(f"{base}/resync", timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
