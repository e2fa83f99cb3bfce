"""Summarize scenario JSON outputs into JSON, CSV, and summary stats."""

from __future__ import annotations

import argparse
import csv
import json
from pathlib import Path

FIELDS = ["file", "kind", "name", "passed", "valid", "pre_trigger", "post_trigger", "trigger_index", "detail"]


def _capture_row(path: Path, data: dict) -> dict:
    stats = data.get("stats", {})
    return {
        "file": path.name,
        "kind": "capture",
        "name": path.stem.removeprefix("capture_"),
        "passed": bool(data.get("acquired")),
        "valid": stats.get("valid"),
        "pre_trigger": stats.get("pre_trigger"),
        "post_trigger": stats.get("post_trigger"),
        "trigger_index": stats.get("trigger_index"),
        "detail": " -> ".join(data.get("states", [])),
    }


def _selftest_rows(path: Path, data: dict) -> list[dict]:
    return [
        {
            "file": path.name,
            "kind": "selftest",
            "name": check.get("name"),
            "passed": bool(check.get("passed")),
            "valid": None,
            "pre_trigger": None,
            "post_trigger": None,
            "trigger_index": None,
            "detail": check.get("detail", ""),
        }
        for check in data.get("checks", [])
    ]


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--outdir", default="artifacts")
    args = ap.parse_args()
    outdir = Path(args.outdir)
    rows = []

    for path in sorted(outdir.glob("*.json")):
        if path.name in {"results.json", "summary.json"}:
            continue
        data = json.loads(path.read_text())
        if not isinstance(data, dict):
            continue
        if "checks" in data:
            rows.extend(_selftest_rows(path, data))
        elif "stats" in data:
            rows.append(_capture_row(path, data))

    (outdir / "results.json").write_text(json.dumps(rows, indent=2))

    with (outdir / "results.csv").open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=FIELDS)
        w.writeheader()
        w.writerows(rows)

    counts: dict[str, dict[str, int]] = {}
    for r in rows:
        bucket = counts.setdefault(r["kind"], {"passed": 0, "failed": 0})
        bucket["passed" if r["passed"] else "failed"] += 1

    summary = {
        "total_rows": len(rows),
        "by_kind": counts,
        "failures": [f"{r['kind']}:{r['name']}" for r in rows if not r["passed"]],
    }
    (outdir / "summary.json").write_text(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
