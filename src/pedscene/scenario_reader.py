from __future__ import annotations
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import IO, Callable, Dict, Iterable, Iterator, List, Optional, Union
import io
import math
import xml.etree.ElementTree as ET

from .elements import (
    AgentCluster,
    AgentType,
    AttractionArea,
    Obstacle,
    WaitingQueue,
    Waypoint,
)
from .geometry import Angle
from .scene import SceneRegistry

# ---------- Record stream ----------

@dataclass(frozen=True)
class Record:
    """One start/end event of the scenario stream."""

    kind: str  # "start" | "end"
    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)


class ScenarioStreamError(Exception):
    """The record source itself is broken (unreadable, malformed, bad encoding)."""


def _strip_ns(tag: str) -> str:
    if "}" in tag:
        return tag.rsplit("}", 1)[1]
    return tag


def iter_xml_records(source: Union[str, Path, IO[bytes]]) -> Iterator[Record]:
    """Stream start/end records out of an XML scenario without building the tree."""
    try:
        for event, elem in ET.iterparse(source, events=("start", "end")):
            tag = _strip_ns(elem.tag)
            if event == "start":
                yield Record("start", tag, dict(elem.attrib))
            else:
                yield Record("end", tag)
                elem.clear()
    except ET.ParseError as e:
        raise ScenarioStreamError(f"malformed scenario: {e}") from e
    except UnicodeDecodeError as e:
        raise ScenarioStreamError(f"bad scenario encoding: {e}") from e


# ---------- Lenient attribute parsing ----------

def _to_float(raw: Optional[str]) -> Optional[float]:
    # Python literals allow "1_000"; scenario numbers do not
    if raw is None or "_" in raw:
        return None
    try:
        val = float(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return val if math.isfinite(val) else None


def _to_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or "_" in raw:
        return None
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class ClusterContext:
    """Which <agent> block is open. `rejected` counts nested blocks being skipped."""

    cluster: Optional[AgentCluster] = None
    rejected: int = 0


# ---------- Reader ----------

class ScenarioReader:
    """Compiles a scenario record stream into a SceneRegistry.

    Only a broken stream makes compilation fail. Everything else (unknown
    tags, dangling references, misplaced children, unparsable numbers) is
    recorded in `issues` and skipped or defaulted.
    """

    def __init__(self, registry: SceneRegistry | None = None, verbose: bool = True):
        self.registry = registry if registry is not None else SceneRegistry()
        self.verbose = verbose
        self.issues: List[str] = []
        self.stream_error: Optional[str] = None
        self._start_handlers: Dict[str, Callable[[Dict[str, str], ClusterContext], ClusterContext]] = {
            "scenario": self._on_container,
            "welcome": self._on_container,
            "obstacle": self._on_obstacle,
            "waypoint": self._on_waypoint,
            "queue": self._on_queue,
            "attraction": self._on_attraction,
            "agent": self._on_agent,
            "addwaypoint": self._on_add_waypoint,
            "addqueue": self._on_add_queue,
        }

    # ---------- entry points ----------

    def read_from_file(self, path: Union[str, Path]) -> bool:
        try:
            f = open(path, "rb")
        except OSError as e:
            self._fatal(f"couldn't open scenario file {path}: {e}")
            return False
        with f:
            return self.compile(iter_xml_records(f))

    def read_from_string(self, text: str) -> bool:
        return self.compile(iter_xml_records(io.BytesIO(text.encode("utf-8"))))

    def compile(self, records: Iterable[Record]) -> bool:
        ctx = ClusterContext()
        try:
            for rec in records:
                ctx = self.process_record(rec, ctx)
        except ScenarioStreamError as e:
            self._fatal(str(e))
            return False
        if ctx.cluster is not None:
            self._diag("scenario ended inside an <agent> element; closing it")
        return True

    # ---------- dispatch ----------

    def process_record(self, rec: Record, ctx: ClusterContext) -> ClusterContext:
        if rec.kind == "start":
            handler = self._start_handlers.get(rec.tag)
            if handler is None:
                self._diag(f"unknown element <{rec.tag}> ignored")
                return ctx
            return handler(rec.attrs, ctx)
        if rec.kind == "end" and rec.tag == "agent":
            if ctx.rejected > 0:
                return replace(ctx, rejected=ctx.rejected - 1)
            if ctx.cluster is None:
                self._diag("</agent> without an open <agent> element")
            return ClusterContext()
        return ctx

    # ---------- start handlers ----------

    def _on_container(self, attrs: Dict[str, str], ctx: ClusterContext) -> ClusterContext:
        return ctx

    def _on_obstacle(self, attrs: Dict[str, str], ctx: ClusterContext) -> ClusterContext:
        x1 = self._float(attrs, "x1", "obstacle")
        y1 = self._float(attrs, "y1", "obstacle")
        x2 = self._float(attrs, "x2", "obstacle")
        y2 = self._float(attrs, "y2", "obstacle")
        self.registry.add_obstacle(Obstacle(x1, y1, x2, y2))
        if not self.registry.draw_obstacle(x1, y1, x2, y2):
            self._diag(f"<obstacle> ({x1:g}, {y1:g})-({x2:g}, {y2:g}) spans more than "
                       f"{self.registry.max_segment_cells} occupancy cells; not rasterized")
        return ctx

    def _on_waypoint(self, attrs: Dict[str, str], ctx: ClusterContext) -> ClusterContext:
        wid = self._ident(attrs, "waypoint")
        if wid is None:
            return ctx
        x = self._float(attrs, "x", "waypoint")
        y = self._float(attrs, "y", "waypoint")
        r = self._non_negative(self._float(attrs, "r", "waypoint"), "r", "waypoint")
        if not self.registry.add_waypoint(Waypoint(wid, x, y, r)):
            self._diag(f"duplicate waypoint id '{wid}'; keeping the first one")
        return ctx

    def _on_queue(self, attrs: Dict[str, str], ctx: ClusterContext) -> ClusterContext:
        qid = self._ident(attrs, "queue")
        if qid is None:
            return ctx
        x = self._float(attrs, "x", "queue")
        y = self._float(attrs, "y", "queue")
        direction = Angle.from_degree(self._float(attrs, "direction", "queue"))
        if not self.registry.add_waiting_queue(WaitingQueue(qid, x, y, direction)):
            self._diag(f"duplicate queue id '{qid}'; keeping the first one")
        return ctx

    def _on_attraction(self, attrs: Dict[str, str], ctx: ClusterContext) -> ClusterContext:
        aid = self._ident(attrs, "attraction")
        if aid is None:
            return ctx
        x = self._float(attrs, "x", "attraction")
        y = self._float(attrs, "y", "attraction")
        width = self._non_negative(self._float(attrs, "width", "attraction"), "width", "attraction")
        height = self._non_negative(self._float(attrs, "height", "attraction"), "height", "attraction")
        strength = self._float(attrs, "strength", "attraction")
        if not self.registry.add_attraction(AttractionArea(aid, x, y, width, height, strength)):
            self._diag(f"duplicate attraction id '{aid}'; keeping the first one")
        return ctx

    def _on_agent(self, attrs: Dict[str, str], ctx: ClusterContext) -> ClusterContext:
        if ctx.cluster is not None or ctx.rejected > 0:
            self._diag("nested <agent> element ignored")
            return replace(ctx, rejected=ctx.rejected + 1)
        x = self._float(attrs, "x", "agent")
        y = self._float(attrs, "y", "agent")
        n = self._int(attrs, "n", "agent")
        if n < 0:
            self._diag(f"<agent> n={n} is negative; using 0")
            n = 0
        dx = self._float(attrs, "dx", "agent")
        dy = self._float(attrs, "dy", "agent")
        type_code = self._int(attrs, "type", "agent")
        try:
            agent_type = AgentType(type_code)
        except ValueError:
            self._diag(f"<agent> type={type_code} unknown; using {AgentType.ADULT.name.lower()}")
            agent_type = AgentType.ADULT
        cluster = AgentCluster(x, y, n, dx, dy, agent_type)
        self.registry.add_agent_cluster(cluster)
        if self.verbose:
            print(f"[scenario] added agent cluster size {n}")
        return ClusterContext(cluster=cluster)

    def _on_add_waypoint(self, attrs: Dict[str, str], ctx: ClusterContext) -> ClusterContext:
        cluster = self._open_cluster(ctx, "addwaypoint")
        if cluster is None:
            return ctx
        wid = attrs.get("id", "")
        waypoint = self.registry.get_waypoint_by_name(wid)
        if waypoint is None:
            self._diag(f"<addwaypoint> references unknown waypoint '{wid}'")
            return ctx
        cluster.add_waypoint(waypoint)
        return ctx

    def _on_add_queue(self, attrs: Dict[str, str], ctx: ClusterContext) -> ClusterContext:
        cluster = self._open_cluster(ctx, "addqueue")
        if cluster is None:
            return ctx
        qid = attrs.get("id", "")
        queue = self.registry.get_waiting_queue_by_name(qid)
        if queue is None:
            self._diag(f"<addqueue> references unknown queue '{qid}'")
            return ctx
        cluster.add_waiting_queue(queue)
        return ctx

    # ---------- helpers ----------

    def _open_cluster(self, ctx: ClusterContext, tag: str) -> Optional[AgentCluster]:
        if ctx.rejected > 0:
            self._diag(f"<{tag}> inside an ignored nested <agent> element")
            return None
        if ctx.cluster is None:
            self._diag(f"invalid <{tag}> element outside of agent element")
            return None
        return ctx.cluster

    def _ident(self, attrs: Dict[str, str], tag: str) -> Optional[str]:
        ident = (attrs.get("id") or "").strip()
        if not ident:
            self._diag(f"<{tag}> without id skipped")
            return None
        return ident

    def _float(self, attrs: Dict[str, str], name: str, tag: str) -> float:
        raw = attrs.get(name)
        val = _to_float(raw)
        if val is None:
            self._diag(f"<{tag}> {name}={raw!r} is not a number; using 0")
            return 0.0
        return val

    def _int(self, attrs: Dict[str, str], name: str, tag: str) -> int:
        raw = attrs.get(name)
        val = _to_int(raw)
        if val is None:
            self._diag(f"<{tag}> {name}={raw!r} is not an integer; using 0")
            return 0
        return val

    def _non_negative(self, val: float, name: str, tag: str) -> float:
        if val < 0:
            self._diag(f"<{tag}> {name}={val} is negative; using {abs(val)}")
            return abs(val)
        return val

    def _diag(self, msg: str) -> None:
        self.issues.append(msg)
        if self.verbose:
            print(f"[scenario] {msg}")

    def _fatal(self, msg: str) -> None:
        self.stream_error = msg
        if self.verbose:
            print(f"[scenario] {msg}")

