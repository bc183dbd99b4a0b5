from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional, Tuple, Union

import numpy as np

from .geometry import Angle, Rect, Segment, Vec2

# ---------- Static scene elements ----------

@dataclass(frozen=True)
class Obstacle:
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def segment(self) -> Segment:
        return Segment(Vec2(self.x1, self.y1), Vec2(self.x2, self.y2))

    @property
    def is_inert(self) -> bool:
        # zero-length walls are kept but never block anything
        return self.segment.is_degenerate()


@dataclass(frozen=True)
class Waypoint:
    id: str
    x: float
    y: float
    r: float = 0.0

    @property
    def position(self) -> Vec2:
        return Vec2(self.x, self.y)

    def contains(self, x: float, y: float) -> bool:
        return (x - self.x) ** 2 + (y - self.y) ** 2 <= self.r ** 2


QUEUE_SLOT_SPACING_M = 0.8


@dataclass
class WaitingQueue:
    id: str
    x: float
    y: float
    direction: Angle = field(default_factory=Angle)
    queued: List[int] = field(default_factory=list)

    @property
    def position(self) -> Vec2:
        return Vec2(self.x, self.y)

    def enqueue(self, agent_id: int) -> int:
        if agent_id not in self.queued:
            self.queued.append(agent_id)
        return self.queued.index(agent_id)

    def dequeue(self) -> Optional[int]:
        if not self.queued:
            return None
        return self.queued.pop(0)

    def position_of(self, agent_id: int) -> int:
        """Index in the queue, -1 when the agent is not queued."""
        try:
            return self.queued.index(agent_id)
        except ValueError:
            return -1

    def slot_position(self, index: int) -> Vec2:
        """Agents line up behind the anchor, opposite to the facing direction."""
        return self.position - self.direction.unit() * (QUEUE_SLOT_SPACING_M * max(0, index))


@dataclass(frozen=True)
class AttractionArea:
    id: str
    x: float
    y: float
    width: float
    height: float
    strength: float

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    @property
    def is_attracting(self) -> bool:
        return self.strength > 0.0


# ---------- Agents ----------

class AgentType(IntEnum):
    ADULT = 0
    CHILD = 1
    ROBOT = 2
    ELDER = 3


class AgentState(Enum):
    NONE = "none"
    WALKING = "walking"
    QUEUEING = "queueing"
    SHOPPING = "shopping"
    GROUP_WALKING = "group_walking"
    REACHED = "reached"


Destination = Union[Waypoint, WaitingQueue]


@dataclass
class Agent:
    id: int
    agent_type: AgentType = AgentType.ADULT
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    destinations: List[Destination] = field(default_factory=list)
    destination_index: int = 0
    state: AgentState = AgentState.NONE
    group_id: Optional[int] = None
    # written only by this agent's own projection step
    last_orientation: Optional[Tuple[float, float, float, float]] = None
    dwell_until: float = 0.0

    @property
    def position(self) -> Vec2:
        return Vec2(self.x, self.y)

    @property
    def velocity(self) -> Vec2:
        return Vec2(self.vx, self.vy)

    def current_destination(self) -> Optional[Destination]:
        if 0 <= self.destination_index < len(self.destinations):
            return self.destinations[self.destination_index]
        return None

    def advance_destination(self) -> Optional[Destination]:
        self.destination_index += 1
        return self.current_destination()


@dataclass
class AgentCluster:
    x: float
    y: float
    count: int
    dx: float = 0.0
    dy: float = 0.0
    agent_type: AgentType = AgentType.ADULT
    destinations: List[Destination] = field(default_factory=list)

    def add_waypoint(self, waypoint: Waypoint) -> None:
        self.destinations.append(waypoint)

    def add_waiting_queue(self, queue: WaitingQueue) -> None:
        self.destinations.append(queue)

    @property
    def waypoints(self) -> List[Waypoint]:
        return [d for d in self.destinations if isinstance(d, Waypoint)]

    @property
    def queues(self) -> List[WaitingQueue]:
        return [d for d in self.destinations if isinstance(d, WaitingQueue)]

    def dissolve(self, rng: np.random.Generator, first_id: int) -> List[Agent]:
        """Instantiate `count` agents spread uniformly over the dx/dy box around (x, y)."""
        n = max(0, int(self.count))
        if n == 0:
            return []
        xs = self.x + rng.uniform(-0.5, 0.5, size=n) * self.dx
        ys = self.y + rng.uniform(-0.5, 0.5, size=n) * self.dy
        return [
            Agent(
                id=first_id + k,
                agent_type=self.agent_type,
                x=float(xs[k]),
                y=float(ys[k]),
                destinations=list(self.destinations),
            )
            for k in range(n)
        ]
