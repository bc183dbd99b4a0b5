from __future__ import annotations
from typing import Protocol
import math

from .elements import Agent, AgentState, WaitingQueue, Waypoint
from .scene import SceneRegistry


class MotionModel(Protocol):
    def step(self, registry: SceneRegistry, dt: float) -> None: ...


class WaypointFollower:
    """Kinematic stand-in for the force model.

    Agents walk straight at constant speed to each destination in turn. At a
    queue they take the tail slot, wait until they reach the front, dwell
    there, then leave. No collision avoidance, no forces.
    """

    def __init__(self, speed_mps: float = 1.2, queue_dwell_s: float = 3.0, loop: bool = False):
        self.speed_mps = max(0.0, float(speed_mps))
        self.queue_dwell_s = max(0.0, float(queue_dwell_s))
        self.loop = bool(loop)
        self.t = 0.0

    def step(self, registry: SceneRegistry, dt: float) -> None:
        self.t += dt
        for agent in registry.agents:
            self._step_agent(agent, dt)

    # ---------- per agent ----------

    def _step_agent(self, agent: Agent, dt: float) -> None:
        dest = agent.current_destination()
        if dest is None and self.loop and agent.destinations:
            agent.destination_index = 0
            dest = agent.current_destination()
        if dest is None:
            agent.vx = agent.vy = 0.0
            agent.state = AgentState.REACHED if agent.destinations else AgentState.NONE
            return
        if isinstance(dest, WaitingQueue):
            self._step_queue(agent, dest, dt)
        else:
            self._step_waypoint(agent, dest, dt)

    def _walking_state(self, agent: Agent) -> AgentState:
        return AgentState.GROUP_WALKING if agent.group_id is not None else AgentState.WALKING

    def _move_toward(self, agent: Agent, tx: float, ty: float, dt: float) -> bool:
        """Move one step toward (tx, ty); True once the target is reached."""
        ex, ey = tx - agent.x, ty - agent.y
        dist = math.hypot(ex, ey)
        step = self.speed_mps * dt
        if dist <= step or dist < 1e-9:
            agent.vx = ex / dt if dt > 0 else 0.0
            agent.vy = ey / dt if dt > 0 else 0.0
            agent.x, agent.y = tx, ty
            return True
        agent.vx = ex / dist * self.speed_mps
        agent.vy = ey / dist * self.speed_mps
        agent.x += agent.vx * dt
        agent.y += agent.vy * dt
        return False

    def _step_waypoint(self, agent: Agent, wp: Waypoint, dt: float) -> None:
        arrived = self._move_toward(agent, wp.x, wp.y, dt) or wp.contains(agent.x, agent.y)
        agent.state = self._walking_state(agent)
        if arrived:
            agent.advance_destination()

    def _step_queue(self, agent: Agent, queue: WaitingQueue, dt: float) -> None:
        idx = queue.position_of(agent.id)
        if idx < 0:
            slot = queue.slot_position(len(queue.queued))
            if self._move_toward(agent, slot.x, slot.y, dt):
                queue.enqueue(agent.id)
                agent.state = AgentState.QUEUEING
            else:
                agent.state = self._walking_state(agent)
            return

        agent.state = AgentState.QUEUEING
        slot = queue.slot_position(idx)
        if not self._move_toward(agent, slot.x, slot.y, dt):
            return
        agent.vx = agent.vy = 0.0
        if idx != 0:
            return
        if agent.dwell_until <= 0.0:
            agent.dwell_until = self.t + self.queue_dwell_s
        if self.t >= agent.dwell_until:
            queue.dequeue()
            agent.dwell_until = 0.0
            agent.advance_destination()
            agent.state = self._walking_state(agent)
