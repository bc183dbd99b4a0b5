from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import math

import pybullet as p

from .elements import Agent, AgentState, AgentType

Quat = Tuple[float, float, float, float]   # x, y, z, w
RGBA = Tuple[float, float, float, float]

IDENTITY_QUAT: Quat = (0.0, 0.0, 0.0, 1.0)
_MIN_SPEED = 1e-9

# ---------- Activity labels ----------

DEFAULT_ACTIVITY = "unknown"

ACTIVITY_LABELS: Dict[AgentState, str] = {
    AgentState.NONE: "standing",
    AgentState.WALKING: "individual_moving",
    AgentState.GROUP_WALKING: "group_moving",
    AgentState.QUEUEING: "waiting_in_queue",
    AgentState.SHOPPING: "shopping",
    AgentState.REACHED: "standing",
}


def activity_label(state: object) -> str:
    """Publishable activity for a behaviour state; states added later map to 'unknown'."""
    try:
        return ACTIVITY_LABELS.get(state, DEFAULT_ACTIVITY)  # type: ignore[arg-type]
    except TypeError:
        # unhashable state objects
        return DEFAULT_ACTIVITY


# ---------- Orientation ----------

def yaw_to_quaternion(yaw: float) -> Quat:
    qx, qy, qz, qw = p.getQuaternionFromEuler([0.0, 0.0, float(yaw)])
    return (float(qx), float(qy), float(qz), float(qw))


def _align(q: Quat, ref: Optional[Quat]) -> Quat:
    # q and -q are the same rotation; stay on ref's side so consecutive ticks never jump
    if ref is None:
        return q
    if sum(a * b for a, b in zip(q, ref)) < 0.0:
        return (-q[0], -q[1], -q[2], -q[3])
    return q


def orientation_of(agent: Agent) -> Quat:
    """Rotation about +z facing along the agent's velocity.

    A standing agent keeps last tick's orientation (identity before it ever
    moved). The result is cached on the agent itself.
    """
    if math.hypot(agent.vx, agent.vy) < _MIN_SPEED:
        q = agent.last_orientation if agent.last_orientation is not None else IDENTITY_QUAT
    else:
        q = _align(yaw_to_quaternion(math.atan2(agent.vy, agent.vx)), agent.last_orientation)
    agent.last_orientation = q
    return q


def quaternion_yaw(q: Quat) -> float:
    x, y, z, w = q
    return math.atan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))


# ---------- Visual coding ----------

AGENT_PALETTE: List[RGBA] = [
    (0.12, 0.47, 0.71, 1.0),
    (1.00, 0.50, 0.05, 1.0),
    (0.17, 0.63, 0.17, 1.0),
    (0.84, 0.15, 0.16, 1.0),
    (0.58, 0.40, 0.74, 1.0),
    (0.55, 0.34, 0.29, 1.0),
    (0.89, 0.47, 0.76, 1.0),
    (0.50, 0.50, 0.50, 1.0),
    (0.74, 0.74, 0.13, 1.0),
    (0.09, 0.75, 0.81, 1.0),
    (0.00, 0.00, 0.55, 1.0),
    (0.60, 0.90, 0.20, 1.0),
]

ROBOT_COLOR: RGBA = (0.9, 0.1, 0.1, 1.0)


def color_of(agent_id: int) -> RGBA:
    return AGENT_PALETTE[int(agent_id) % len(AGENT_PALETTE)]


def color_hex(rgba: RGBA) -> str:
    r, g, b = (max(0, min(255, int(round(c * 255)))) for c in rgba[:3])
    return f"#{r:02x}{g:02x}{b:02x}"


# ---------- Published facts ----------

@dataclass(frozen=True)
class AgentProjection:
    agent_id: int
    agent_type: str
    position: Tuple[float, float, float]
    velocity: Tuple[float, float, float]
    orientation: Quat
    activity: str
    color: RGBA
    source: str = "agent"   # agent | external
    group_id: Optional[int] = None

    @property
    def yaw(self) -> float:
        return quaternion_yaw(self.orientation)


@dataclass
class ExternalPose:
    """Externally tracked (robot) pose; velocity is filled in by the simulator."""

    x: float
    y: float
    yaw: float = 0.0
    t: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    agent_id: int = 0


def project_agent(agent: Agent) -> AgentProjection:
    return AgentProjection(
        agent_id=agent.id,
        agent_type=agent.agent_type.name.lower(),
        position=(agent.x, agent.y, 0.0),
        velocity=(agent.vx, agent.vy, 0.0),
        orientation=orientation_of(agent),
        activity=activity_label(agent.state),
        color=color_of(agent.id),
        group_id=agent.group_id,
    )


def project_external_pose(pose: ExternalPose, activity: str = DEFAULT_ACTIVITY) -> AgentProjection:
    return AgentProjection(
        agent_id=pose.agent_id,
        agent_type=AgentType.ROBOT.name.lower(),
        position=(pose.x, pose.y, 0.0),
        velocity=(pose.vx, pose.vy, 0.0),
        orientation=yaw_to_quaternion(pose.yaw),
        activity=activity,
        color=ROBOT_COLOR,
        source="external",
    )


@dataclass(frozen=True)
class TrackedGroup:
    """A walking group as seen in one tick: members and their centroid."""

    group_id: int
    member_ids: List[int]
    centroid: Tuple[float, float, float]


@dataclass
class TickSnapshot:
    tick: int
    t: float
    agents: List[AgentProjection] = field(default_factory=list)
    robot: Optional[AgentProjection] = None

    def all_poses(self) -> List[AgentProjection]:
        return self.agents + ([self.robot] if self.robot is not None else [])

    def by_activity(self) -> Dict[str, List[int]]:
        """Agent ids grouped per activity label (social activities)."""
        out: Dict[str, List[int]] = {}
        for a in self.agents:
            out.setdefault(a.activity, []).append(a.agent_id)
        return out

    def groups(self) -> List[TrackedGroup]:
        members: Dict[int, List[AgentProjection]] = {}
        for a in self.agents:
            if a.group_id is not None:
                members.setdefault(a.group_id, []).append(a)
        out: List[TrackedGroup] = []
        for gid in sorted(members):
            ms = members[gid]
            cx = sum(m.position[0] for m in ms) / len(ms)
            cy = sum(m.position[1] for m in ms) / len(ms)
            out.append(TrackedGroup(gid, [m.agent_id for m in ms], (cx, cy, 0.0)))
        return out


def project_tick(agents: List[Agent], tick: int, t: float,
                 robot: ExternalPose | None = None) -> TickSnapshot:
    snap = TickSnapshot(tick=tick, t=t)
    for agent in agents:
        snap.agents.append(project_agent(agent))
    if robot is not None:
        snap.robot = project_external_pose(robot)
    return snap
