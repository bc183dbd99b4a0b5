from __future__ import annotations
from typing import Any, Dict, List, Optional, Set, Tuple

import numpy as np

from .elements import (
    Agent,
    AgentCluster,
    AgentType,
    AttractionArea,
    Obstacle,
    WaitingQueue,
    Waypoint,
)
from .occupancy import MAX_GRID_CELLS, MAX_SEGMENT_CELLS, Cell, rasterize_segment


class SceneRegistry:
    """Authoritative store of every compiled scene element.

    Waypoints, queues and attractions are keyed by identifier so reference
    resolution during compilation is a dict lookup. Adding an identifier that
    already exists keeps the first declaration and reports False.
    """

    def __init__(self, cell_size: float = 1.0, max_segment_cells: int = MAX_SEGMENT_CELLS,
                 max_grid_cells: int = MAX_GRID_CELLS):
        self.cell_size = float(cell_size) if cell_size and cell_size > 0 else 1.0
        self.max_segment_cells = int(max_segment_cells)
        self.max_grid_cells = int(max_grid_cells)
        self.obstacles: List[Obstacle] = []
        self.waypoints: Dict[str, Waypoint] = {}
        self.waiting_queues: Dict[str, WaitingQueue] = {}
        self.attractions: Dict[str, AttractionArea] = {}
        self.agent_clusters: List[AgentCluster] = []
        self.agents: List[Agent] = []
        self.obstacle_cells: Set[Cell] = set()

    # ---------- population (compile phase) ----------

    def add_obstacle(self, obstacle: Obstacle) -> None:
        self.obstacles.append(obstacle)

    def draw_obstacle(self, x1: float, y1: float, x2: float, y2: float) -> bool:
        """Add the wall's cells to the occupancy set; False if it spans more than max_segment_cells."""
        try:
            cells = rasterize_segment(x1, y1, x2, y2, self.cell_size, max_cells=self.max_segment_cells)
        except ValueError:
            return False
        self.obstacle_cells.update(cells)
        return True

    def add_waypoint(self, waypoint: Waypoint) -> bool:
        if waypoint.id in self.waypoints:
            return False
        self.waypoints[waypoint.id] = waypoint
        return True

    def add_waiting_queue(self, queue: WaitingQueue) -> bool:
        if queue.id in self.waiting_queues:
            return False
        self.waiting_queues[queue.id] = queue
        return True

    def add_attraction(self, attraction: AttractionArea) -> bool:
        if attraction.id in self.attractions:
            return False
        self.attractions[attraction.id] = attraction
        return True

    def add_agent_cluster(self, cluster: AgentCluster) -> None:
        self.agent_clusters.append(cluster)

    def add_agent(self, agent: Agent) -> None:
        self.agents.append(agent)

    # ---------- lookups ----------

    def get_waypoint_by_name(self, name: str) -> Optional[Waypoint]:
        return self.waypoints.get(name)

    def get_waiting_queue_by_name(self, name: str) -> Optional[WaitingQueue]:
        return self.waiting_queues.get(name)

    def get_attraction_by_name(self, name: str) -> Optional[AttractionArea]:
        return self.attractions.get(name)

    # ---------- agents ----------

    def robot_clusters(self) -> List[AgentCluster]:
        return [c for c in self.agent_clusters if c.agent_type == AgentType.ROBOT]

    def populate(self, seed: int | None = 0, group_size: int = 1) -> List[Agent]:
        """Dissolve every pedestrian cluster into agents with sequential ids from 1.

        Robot clusters are skipped: the robot pose is supplied from outside and
        never lives in the generic agent collection. With group_size >= 2 the
        members of each cluster are partitioned (seeded) into walking groups
        of 2..group_size agents; a single leftover agent walks alone.
        """
        rng = np.random.default_rng(seed)
        self.agents = []
        next_id = 1
        next_group = 1
        for cluster in self.agent_clusters:
            if cluster.agent_type == AgentType.ROBOT:
                continue
            spawned = cluster.dissolve(rng, next_id)
            if group_size >= 2:
                next_group = self._assign_groups(spawned, rng, group_size, next_group)
            self.agents.extend(spawned)
            next_id += len(spawned)
        return self.agents

    @staticmethod
    def _assign_groups(agents: List[Agent], rng: np.random.Generator, group_size: int, next_group: int) -> int:
        order = [agents[k] for k in rng.permutation(len(agents))]
        i = 0
        while len(order) - i >= 2:
            size = min(int(rng.integers(2, group_size + 1)), len(order) - i)
            for a in order[i:i + size]:
                a.group_id = next_group
            next_group += 1
            i += size
        return next_group

    def groups(self) -> Dict[int, List[Agent]]:
        """Group id -> member agents (ascending id), for grouped agents only."""
        out: Dict[int, List[Agent]] = {}
        for a in self.agents:
            if a.group_id is not None:
                out.setdefault(a.group_id, []).append(a)
        return out

    # ---------- misc ----------

    def bounds(self) -> Tuple[float, float, float, float]:
        """(x0, y0, x1, y1) over obstacles, waypoints, queues, attractions and clusters."""
        xs: List[float] = []
        ys: List[float] = []
        for o in self.obstacles:
            xs += [o.x1, o.x2]
            ys += [o.y1, o.y2]
        for w in self.waypoints.values():
            xs += [w.x - w.r, w.x + w.r]
            ys += [w.y - w.r, w.y + w.r]
        for q in self.waiting_queues.values():
            xs.append(q.x)
            ys.append(q.y)
        for a in self.attractions.values():
            x0, y0, x1, y1 = a.rect.aabb()
            xs += [x0, x1]
            ys += [y0, y1]
        for c in self.agent_clusters:
            xs += [c.x - 0.5 * c.dx, c.x + 0.5 * c.dx]
            ys += [c.y - 0.5 * c.dy, c.y + 0.5 * c.dy]
        if not xs:
            return (0.0, 0.0, 0.0, 0.0)
        return (min(xs), min(ys), max(xs), max(ys))

    def summary(self) -> Dict[str, Any]:
        return {
            "obstacles": len(self.obstacles),
            "waypoints": len(self.waypoints),
            "queues": len(self.waiting_queues),
            "attractions": len(self.attractions),
            "agent_clusters": len(self.agent_clusters),
            "agents": len(self.agents),
            "groups": len(self.groups()),
            "obstacle_cells": len(self.obstacle_cells),
        }

    def clear(self) -> None:
        self.obstacles.clear()
        self.waypoints.clear()
        self.waiting_queues.clear()
        self.attractions.clear()
        self.agent_clusters.clear()
        self.agents.clear()
        self.obstacle_cells.clear()
