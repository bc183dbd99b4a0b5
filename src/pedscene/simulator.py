from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .config import merged_config
from .motion import MotionModel, WaypointFollower
from .occupancy import cell_centers
from .projection import ExternalPose, TickSnapshot, activity_label, project_tick
from .scenario_reader import ScenarioReader
from .scene import SceneRegistry


class Publisher(Protocol):
    def publish(self, snapshot: TickSnapshot) -> None: ...


class Simulator:
    """Tick driver around the scene registry.

    Compilation runs once in initialize_simulation(); afterwards every step()
    is one complete tick: motion model, activity update, projection, publish.
    Pausing only takes effect between ticks.
    """

    def __init__(self, config: Dict[str, Any] | None = None,
                 motion: MotionModel | None = None,
                 publisher: Publisher | None = None):
        self.config = merged_config(config)
        ocfg = self.config["occupancy"]
        self.registry = SceneRegistry(cell_size=ocfg["cell_size"], max_segment_cells=ocfg["max_segment_cells"],
                                      max_grid_cells=ocfg["max_grid_cells"])
        mcfg = self.config["motion"]
        self.motion: MotionModel = motion if motion is not None else WaypointFollower(
            speed_mps=mcfg["speed_mps"], queue_dwell_s=mcfg["queue_dwell_s"], loop=mcfg["loop"])
        self.publisher = publisher
        self.dt = float(self.config["runtime"]["dt"])
        self.tick = 0
        self.t = 0.0
        self.paused = False
        self.agent_activities: Dict[int, str] = {}
        self.robot: Optional[ExternalPose] = None
        self.issues: List[str] = []

    # ---------- setup ----------

    def initialize_simulation(self, scenario_path: Path | str) -> bool:
        reader = ScenarioReader(self.registry, verbose=bool(self.config.get("verbose", True)))
        ok = reader.read_from_file(scenario_path)
        self.issues = list(reader.issues)
        if not ok:
            return False
        self.registry.populate(seed=self.config["spawn"]["seed"], group_size=self.config["spawn"]["group_size"])
        if self.config["robot"]["mode"] == "external":
            robots = self.registry.robot_clusters()
            if robots:
                self.robot = ExternalPose(x=robots[0].x, y=robots[0].y, t=self.t,
                                          agent_id=self.config["robot"]["agent_id"])
        return True

    # ---------- external robot pose ----------

    def update_robot_pose(self, x: float, y: float, yaw: float, t: float | None = None) -> ExternalPose:
        """Take a new tracked robot pose; velocity is the difference to the previous one."""
        t_now = self.t if t is None else float(t)
        prev = self.robot
        vx = vy = 0.0
        if prev is not None:
            dt = t_now - prev.t
            if dt > 0:
                vx = (x - prev.x) / dt
                vy = (y - prev.y) / dt
        self.robot = ExternalPose(x=float(x), y=float(y), yaw=float(yaw), t=t_now, vx=vx, vy=vy,
                                  agent_id=self.config["robot"]["agent_id"])
        return self.robot

    # ---------- tick loop ----------

    def pause(self) -> None:
        self.paused = True

    def unpause(self) -> None:
        self.paused = False

    def update_agent_activities(self) -> Dict[int, str]:
        self.agent_activities = {a.id: activity_label(a.state) for a in self.registry.agents}
        return self.agent_activities

    def step(self) -> Optional[TickSnapshot]:
        if self.paused:
            return None
        self.motion.step(self.registry, self.dt)
        self.tick += 1
        self.t = self.tick * self.dt
        self.update_agent_activities()
        robot = self.robot if self.config["robot"]["mode"] == "external" else None
        snap = project_tick(self.registry.agents, self.tick, self.t, robot=robot)
        if self.publisher is not None:
            self.publisher.publish(snap)
        return snap

    def run(self, ticks: int | None = None) -> List[TickSnapshot]:
        n = self.config["runtime"]["ticks"] if ticks is None else int(ticks)
        out: List[TickSnapshot] = []
        for _ in range(max(0, n)):
            snap = self.step()
            if snap is not None:
                out.append(snap)
        return out

    def obstacle_cells(self) -> List[tuple[float, float]]:
        return cell_centers(self.registry.obstacle_cells, self.registry.cell_size)

    def status(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "t": round(self.t, 6),
            "paused": self.paused,
            "robot": None if self.robot is None else [self.robot.x, self.robot.y, self.robot.yaw],
            **self.registry.summary(),
        }
