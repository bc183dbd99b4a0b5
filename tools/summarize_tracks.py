"""
Summarize pedscene tracks.csv files for quick health checks.

Usage:
  python tools/summarize_tracks.py runs/<run_dir> [runs/<run_dir2> ...]

Outputs per run:
  - rows, ticks, distinct agents
  - mean speed over all agent rows
  - activity histogram (activity field)
  - external (robot) rows
"""

from __future__ import annotations

import argparse
import csv
import math
import statistics
from pathlib import Path
from typing import Dict, List


def summarize(run_dir: Path) -> Dict[str, object]:
    csv_path = run_dir / "tracks.csv"
    out: Dict[str, object] = {"run": run_dir.name}
    if not csv_path.exists():
        out["error"] = "missing tracks.csv"
        return out
    rows = []
    with csv_path.open("r", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            rows.append(row)
    out["rows"] = len(rows)
    out["ticks"] = len({r.get("t") for r in rows})
    agent_rows = [r for r in rows if (r.get("source") or "agent") == "agent"]
    out["agents"] = len({r.get("agent_id") for r in agent_rows})
    out["external_rows"] = len(rows) - len(agent_rows)
    speeds: List[float] = []
    for r in agent_rows:
        try:
            speeds.append(math.hypot(float(r.get("vx", "")), float(r.get("vy", ""))))
        except ValueError:
            continue
    out["mean_speed"] = statistics.mean(speeds) if speeds else None
    activity_counts: Dict[str, int] = {}
    for r in agent_rows:
        act = (r.get("activity") or "unknown").strip()
        activity_counts[act] = activity_counts.get(act, 0) + 1
    out["activity_counts"] = activity_counts
    return out


def main() -> None:
    ap = argparse.ArgumentParser(description="Summarize tracks.csv for one or more runs.")
    ap.add_argument("run_dirs", nargs="+", type=Path)
    args = ap.parse_args()
    for rd in args.run_dirs:
        s = summarize(rd)
        if "error" in s:
            print(f"{s['run']}: {s['error']}")
            continue
        print(f"== {s['run']} ==")
        print(f"rows: {s['rows']}  ticks: {s['ticks']}  agents: {s['agents']}")
        print(f"mean speed: {s['mean_speed']}")
        print(f"external rows: {s['external_rows']}")
        print(f"activities: {s['activity_counts']}")
        print()


if __name__ == "__main__":
    main()
