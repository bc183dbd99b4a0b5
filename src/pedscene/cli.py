from __future__ import annotations

import argparse
import datetime as _dt
import json
import re
import sys
from pathlib import Path
from typing import List, Optional

from .config import load_config
from .digest import build_scene_digest
from .recorder import TrackRecorder, write_json, write_yaml
from .scenario_reader import ScenarioReader
from .simulator import Simulator
from .viewer import build_preview_parser

RUNS_ROOT = Path("runs")


def _run_dir_name(scenario: Path) -> str:
    stem = re.sub(r"[^a-zA-Z0-9\-_]", "_", scenario.stem)[:40] or "scenario"
    return f"{_dt.datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}_{stem}"


def cmd_check(args: argparse.Namespace) -> int:
    reader = ScenarioReader(verbose=not args.quiet)
    if not reader.read_from_file(args.scenario):
        print(f"[FAIL] {args.scenario}: {reader.stream_error}")
        return 1
    digest = build_scene_digest(reader.registry)
    if args.json:
        print(json.dumps(digest, indent=2))
    else:
        for k, v in reader.registry.summary().items():
            print(f"{k}: {v}")
        print(f"issues: {len(reader.issues)}")
        print(f"sha256: {digest['sha256']}")
    if args.strict and reader.issues:
        print(f"[FAIL] {len(reader.issues)} scenario issue(s) in strict mode")
        return 2
    print(f"[OK] {args.scenario}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    overrides = {}
    if args.ticks is not None:
        overrides.setdefault("runtime", {})["ticks"] = args.ticks
    if args.seed is not None:
        overrides.setdefault("spawn", {})["seed"] = args.seed
    cfg = load_config(args.config, overrides=overrides)
    scenario = Path(args.scenario)
    out_dir = Path(args.out) if args.out else RUNS_ROOT / _run_dir_name(scenario)

    sim = Simulator(cfg)
    if not sim.initialize_simulation(scenario):
        print(f"[FAIL] could not compile {scenario}")
        return 1
    with TrackRecorder(out_dir) as rec:
        sim.publisher = rec
        sim.run()
    write_yaml(out_dir / "config.yaml", sim.config)
    write_json(out_dir / "scene.json", build_scene_digest(sim.registry))
    write_json(out_dir / "summary.json", {"scenario": str(scenario), "issues": sim.issues, **sim.status()})
    print(f"[OK] {rec.ticks} ticks, {len(sim.registry.agents)} agents -> {out_dir}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="pedscene", description="Pedestrian scenario compiler and tick projector")
    sub = ap.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("check", help="Compile a scenario and report what it contains")
    sp.add_argument("scenario", type=str)
    sp.add_argument("--json", action="store_true", help="Print the full scene digest")
    sp.add_argument("--strict", action="store_true", help="Exit 2 when any scenario issue was reported")
    sp.add_argument("--quiet", action="store_true", help="Do not echo diagnostics while parsing")
    sp.set_defaults(func=cmd_check)

    sp = sub.add_parser("run", help="Simulate a scenario and record agent tracks")
    sp.add_argument("scenario", type=str)
    sp.add_argument("--config", type=str, default=None, help="YAML config file")
    sp.add_argument("--ticks", type=int, default=None)
    sp.add_argument("--seed", type=int, default=None)
    sp.add_argument("--out", type=str, default=None, help="Output directory (default runs/<stamp>_<scenario>)")
    sp.set_defaults(func=cmd_run)

    build_preview_parser(sub)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
