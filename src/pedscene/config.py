from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional
import copy
import os

import yaml

from .occupancy import MAX_GRID_CELLS, MAX_SEGMENT_CELLS

CONFIG_ENV = "PEDSCENE_CONFIG"

ROBOT_MODES = ("none", "external")


# Plain nested dicts, same shape as the YAML file.

def default_runtime() -> Dict[str, Any]:
	return {
		"dt": 0.1,
		"ticks": 600,
	}


def default_spawn() -> Dict[str, Any]:
	return {
		"seed": 0,
		# 1 = everyone walks alone; N >= 2 partitions each cluster into groups of 2..N
		"group_size": 1,
	}


def default_occupancy() -> Dict[str, Any]:
	return {
		"cell_size": 1.0,
		"max_segment_cells": MAX_SEGMENT_CELLS,
		"max_grid_cells": MAX_GRID_CELLS,
	}


def default_robot() -> Dict[str, Any]:
	return {
		# none: no robot published; external: pose comes from update_robot_pose()
		"mode": "none",
		"agent_id": 0,
	}


def default_motion() -> Dict[str, Any]:
	return {
		"speed_mps": 1.2,
		"queue_dwell_s": 3.0,
		"loop": False,
	}


def default_config() -> Dict[str, Any]:
	return {
		"runtime": default_runtime(),
		"spawn": default_spawn(),
		"occupancy": default_occupancy(),
		"robot": default_robot(),
		"motion": default_motion(),
		"verbose": True,
	}


def _deep_merge(base: Dict[str, Any], over: Dict[str, Any]) -> Dict[str, Any]:
	out = copy.deepcopy(base)
	for k, v in (over or {}).items():
		if isinstance(v, dict) and isinstance(out.get(k), dict):
			out[k] = _deep_merge(out[k], v)
		else:
			out[k] = copy.deepcopy(v)
	return out


def _coerce(cfg: Dict[str, Any], section: str, key: str, kind: type, default: Any) -> None:
	sec = cfg.get(section)
	if not isinstance(sec, dict):
		sec = cfg[section] = {}
	try:
		sec[key] = kind(sec.get(key, default))
	except (TypeError, ValueError):
		print(f"[pedscene] config {section}.{key}={sec.get(key)!r} invalid; using {default!r}")
		sec[key] = default


_TRUE_WORDS = ("true", "yes", "on", "1")
_FALSE_WORDS = ("false", "no", "off", "0")


def _coerce_bool(cfg: Dict[str, Any], section: str, key: str, default: bool) -> None:
	sec = cfg.get(section)
	if not isinstance(sec, dict):
		sec = cfg[section] = {}
	raw = sec.get(key, default)
	if isinstance(raw, bool):
		return
	word = str(raw).strip().lower()
	if word in _TRUE_WORDS:
		sec[key] = True
	elif word in _FALSE_WORDS:
		sec[key] = False
	else:
		print(f"[pedscene] config {section}.{key}={raw!r} invalid; using {default!r}")
		sec[key] = default


def normalize_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
	"""Coerce numeric knobs in place; bad values fall back to defaults."""
	d = default_config()
	_coerce(cfg, "runtime", "dt", float, d["runtime"]["dt"])
	_coerce(cfg, "runtime", "ticks", int, d["runtime"]["ticks"])
	_coerce(cfg, "spawn", "seed", int, d["spawn"]["seed"])
	_coerce(cfg, "occupancy", "cell_size", float, d["occupancy"]["cell_size"])
	_coerce(cfg, "robot", "agent_id", int, d["robot"]["agent_id"])
	_coerce(cfg, "motion", "speed_mps", float, d["motion"]["speed_mps"])
	_coerce(cfg, "motion", "queue_dwell_s", float, d["motion"]["queue_dwell_s"])
	_coerce(cfg, "spawn", "group_size", int, d["spawn"]["group_size"])
	_coerce(cfg, "occupancy", "max_segment_cells", int, d["occupancy"]["max_segment_cells"])
	_coerce(cfg, "occupancy", "max_grid_cells", int, d["occupancy"]["max_grid_cells"])
	_coerce_bool(cfg, "motion", "loop", d["motion"]["loop"])
	if cfg["spawn"]["group_size"] < 1:
		cfg["spawn"]["group_size"] = d["spawn"]["group_size"]
	for key in ("max_segment_cells", "max_grid_cells"):
		if cfg["occupancy"][key] < 1:
			cfg["occupancy"][key] = d["occupancy"][key]
	if cfg["runtime"]["dt"] <= 0:
		cfg["runtime"]["dt"] = d["runtime"]["dt"]
	if cfg["occupancy"]["cell_size"] <= 0:
		cfg["occupancy"]["cell_size"] = d["occupancy"]["cell_size"]
	mode = str(cfg["robot"].get("mode", "none")).strip().lower()
	if mode not in ROBOT_MODES:
		print(f"[pedscene] unknown robot mode {mode!r}; using 'none'")
		mode = "none"
	cfg["robot"]["mode"] = mode
	return cfg


def load_config(path: Optional[Path | str] = None, overrides: Dict[str, Any] | None = None) -> Dict[str, Any]:
	"""Defaults <- YAML file (argument or $PEDSCENE_CONFIG) <- overrides."""
	cfg = default_config()
	if path is None:
		env_path = os.environ.get(CONFIG_ENV, "").strip()
		path = env_path or None
	if path is not None:
		text = Path(path).read_text(encoding="utf-8")
		loaded = yaml.safe_load(text) or {}
		if not isinstance(loaded, dict):
			raise ValueError(f"config file {path} must contain a mapping")
		cfg = _deep_merge(cfg, loaded)
	if overrides:
		cfg = _deep_merge(cfg, overrides)
	return normalize_config(cfg)


def merged_config(overrides: Dict[str, Any] | None = None) -> Dict[str, Any]:
	"""Defaults <- overrides, without reading any file."""
	return normalize_config(_deep_merge(default_config(), overrides or {}))
