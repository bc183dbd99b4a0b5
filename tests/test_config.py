from __future__ import annotations

from pathlib import Path

import pytest

from pedscene.config import CONFIG_ENV, default_config, load_config, merged_config


def _write_yaml(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_file(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    cfg = load_config()
    assert cfg == merged_config()
    assert cfg["runtime"]["dt"] == default_config()["runtime"]["dt"]
    assert cfg["robot"]["mode"] == "none"


def test_yaml_file_is_merged_over_defaults(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "cfg.yaml", "runtime:\n  ticks: 50\nrobot:\n  mode: External\n")
    cfg = load_config(path)
    assert cfg["runtime"]["ticks"] == 50
    assert cfg["runtime"]["dt"] == 0.1
    assert cfg["robot"]["mode"] == "external"
    assert cfg["motion"]["speed_mps"] == 1.2


def test_env_var_points_at_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path / "env.yaml", "spawn:\n  seed: 42\n")
    monkeypatch.setenv(CONFIG_ENV, str(path))
    assert load_config()["spawn"]["seed"] == 42


def test_invalid_values_fall_back(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "bad.yaml",
                       "runtime:\n  dt: fast\n  ticks: -1\noccupancy:\n  cell_size: 0\nrobot:\n  mode: lidar\nmotion: 3\n")
    cfg = load_config(path)
    assert cfg["runtime"]["dt"] == 0.1
    assert cfg["runtime"]["ticks"] == -1
    assert cfg["occupancy"]["cell_size"] == 1.0
    assert cfg["robot"]["mode"] == "none"
    assert cfg["motion"]["speed_mps"] == 1.2


def test_overrides_win_over_file(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "cfg.yaml", "runtime:\n  ticks: 50\n")
    cfg = load_config(path, overrides={"runtime": {"ticks": 7}})
    assert cfg["runtime"]["ticks"] == 7


def test_non_mapping_file_is_rejected(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "list.yaml", "- 1\n- 2\n")
    with pytest.raises(ValueError):
        load_config(path)


def test_loop_flag_accepts_words(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "loop.yaml", 'motion:\n  loop: "false"\n')
    assert load_config(path)["motion"]["loop"] is False
    assert merged_config({"motion": {"loop": "yes"}})["motion"]["loop"] is True
    assert merged_config({"motion": {"loop": "sometimes"}})["motion"]["loop"] is False


def test_group_size_and_cell_limits_fall_back() -> None:
    cfg = merged_config({"spawn": {"group_size": 0}, "occupancy": {"max_segment_cells": -5, "max_grid_cells": "many"}})
    d = default_config()
    assert cfg["spawn"]["group_size"] == 1
    assert cfg["occupancy"]["max_segment_cells"] == d["occupancy"]["max_segment_cells"]
    assert cfg["occupancy"]["max_grid_cells"] == d["occupancy"]["max_grid_cells"]
