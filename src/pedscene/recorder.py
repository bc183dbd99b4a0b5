from __future__ import annotations
import csv
import json
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .projection import TickSnapshot, color_hex

TRACK_HEADER = ["t", "agent_id", "type", "x", "y", "yaw", "activity", "vx", "vy", "color", "source", "group"]


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def write_yaml(path: Path, data: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)


def write_json(path: Path, data: Dict[str, Any] | list[Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


class TrackRecorder:
    """Publisher that appends every tick to tracks.csv.

    On close() it also writes activities.json (per tick, agent ids grouped
    by activity label) and groups.json (per tick, tracked walking groups).
    """

    def __init__(self, out_dir: Path):
        self.out_dir = Path(out_dir)
        ensure_dir(self.out_dir)
        self.tracks_path = self.out_dir / "tracks.csv"
        self._f = self.tracks_path.open("w", newline="", encoding="utf-8")
        self._w = csv.writer(self._f)
        self._w.writerow(TRACK_HEADER)
        self.activities: List[Dict[str, Any]] = []
        self.groups: List[Dict[str, Any]] = []
        self.ticks = 0

    def publish(self, snapshot: TickSnapshot) -> None:
        for a in snapshot.all_poses():
            self._w.writerow([
                f"{snapshot.t:.3f}", a.agent_id, a.agent_type,
                f"{a.position[0]:.4f}", f"{a.position[1]:.4f}", f"{a.yaw:.4f}",
                a.activity, f"{a.velocity[0]:.4f}", f"{a.velocity[1]:.4f}",
                color_hex(a.color), a.source, "" if a.group_id is None else a.group_id,
            ])
        self.activities.append({"tick": snapshot.tick, "t": round(snapshot.t, 6),
                                "activities": snapshot.by_activity()})
        self.groups.append({"tick": snapshot.tick, "t": round(snapshot.t, 6), "groups": [
            {"group_id": g.group_id, "members": g.member_ids,
             "centroid": [round(c, 4) for c in g.centroid]}
            for g in snapshot.groups()
        ]})
        self.ticks += 1

    def close(self) -> None:
        if self._f.closed:
            return
        self._f.close()
        write_json(self.out_dir / "activities.json", self.activities)
        write_json(self.out_dir / "groups.json", self.groups)

    def __enter__(self) -> "TrackRecorder":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
