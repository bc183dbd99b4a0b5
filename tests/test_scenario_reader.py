from __future__ import annotations

from pathlib import Path

from pedscene.elements import AgentType, WaitingQueue, Waypoint
from pedscene.scenario_reader import Record, ScenarioReader, ScenarioStreamError


def _compile(xml: str) -> tuple[bool, ScenarioReader]:
    reader = ScenarioReader(verbose=False)
    ok = reader.read_from_string(xml)
    return ok, reader


def _write_scenario(path: Path, xml: str) -> Path:
    path.write_text(xml, encoding="utf-8")
    return path


def test_waypoint_cluster_end_to_end(tmp_path: Path) -> None:
    path = _write_scenario(tmp_path / "s.xml", """
<scenario>
  <waypoint id="w1" x="1" y="2" r="0.5"/>
  <agent x="0" y="0" n="3" dx="0" dy="0" type="0">
    <addwaypoint id="w1"/>
  </agent>
</scenario>
""")
    reader = ScenarioReader(verbose=False)
    assert reader.read_from_file(path)
    assert reader.issues == []
    clusters = reader.registry.agent_clusters
    assert len(clusters) == 1
    cluster = clusters[0]
    assert cluster.count == 3
    assert cluster.agent_type == AgentType.ADULT
    assert len(cluster.destinations) == 1
    w = cluster.destinations[0]
    assert isinstance(w, Waypoint)
    assert (w.id, w.x, w.y, w.r) == ("w1", 1.0, 2.0, 0.5)
    assert w is reader.registry.get_waypoint_by_name("w1")


def test_references_keep_declaration_order() -> None:
    ok, reader = _compile("""
<scenario>
  <waypoint id="w1" x="0" y="0" r="1"/>
  <waypoint id="w2" x="5" y="0" r="1"/>
  <queue id="q1" x="3" y="3" direction="90"/>
  <agent x="0" y="0" n="2" dx="1" dy="1" type="1">
    <addwaypoint id="w2"/>
    <addqueue id="q1"/>
    <addwaypoint id="w1"/>
  </agent>
</scenario>
""")
    assert ok
    cluster = reader.registry.agent_clusters[0]
    assert [d.id for d in cluster.destinations] == ["w2", "q1", "w1"]
    assert [w.id for w in cluster.waypoints] == ["w2", "w1"]
    assert len(cluster.queues) == 1
    assert cluster.queues[0] is reader.registry.get_waiting_queue_by_name("q1")
    assert cluster.agent_type == AgentType.CHILD


def test_add_outside_cluster_is_a_noop() -> None:
    ok, reader = _compile("""
<scenario>
  <waypoint id="w1" x="1" y="1" r="1"/>
  <queue id="q1" x="2" y="2" direction="0"/>
  <addqueue id="q1"/>
  <agent x="0" y="0" n="1" dx="0" dy="0" type="0">
    <addwaypoint id="w1"/>
  </agent>
  <addwaypoint id="w1"/>
</scenario>
""")
    assert ok
    reg = reader.registry
    assert reg.summary()["waypoints"] == 1
    assert reg.summary()["queues"] == 1
    assert [d.id for d in reg.agent_clusters[0].destinations] == ["w1"]
    outside = [m for m in reader.issues if "outside of agent element" in m]
    assert len(outside) == 2


def test_unknown_reference_is_skipped() -> None:
    ok, reader = _compile("""
<scenario>
  <agent x="0" y="0" n="1" dx="0" dy="0" type="0">
    <addwaypoint id="nope"/>
    <addqueue id="nope"/>
  </agent>
</scenario>
""")
    assert ok
    cluster = reader.registry.agent_clusters[0]
    assert cluster.destinations == []
    assert reader.registry.get_waypoint_by_name("nope") is None
    assert reader.registry.get_waiting_queue_by_name("nope") is None
    assert sum("'nope'" in m for m in reader.issues) == 2


def test_reference_before_declaration_does_not_resolve() -> None:
    ok, reader = _compile("""
<scenario>
  <agent x="0" y="0" n="1" dx="0" dy="0" type="0">
    <addwaypoint id="late"/>
  </agent>
  <waypoint id="late" x="1" y="1" r="1"/>
</scenario>
""")
    assert ok
    assert reader.registry.agent_clusters[0].destinations == []
    assert reader.registry.get_waypoint_by_name("late") is not None


def test_malformed_numeric_still_builds_obstacle() -> None:
    ok, reader = _compile("""
<scenario>
  <obstacle x1="abc" y1="1" x2="4" y2="1"/>
</scenario>
""")
    assert ok
    assert len(reader.registry.obstacles) == 1
    obs = reader.registry.obstacles[0]
    assert (obs.x1, obs.y1, obs.x2, obs.y2) == (0.0, 1.0, 4.0, 1.0)
    assert any("x1='abc'" in m for m in reader.issues)
    assert reader.registry.obstacle_cells


def test_integer_attributes_are_parsed_strictly() -> None:
    ok, reader = _compile("""
<scenario>
  <agent x="0" y="0" n="3.5" dx="0" dy="0" type="x"/>
</scenario>
""")
    assert ok
    cluster = reader.registry.agent_clusters[0]
    assert cluster.count == 0
    assert cluster.agent_type == AgentType.ADULT
    assert len(reader.issues) == 2


def test_unknown_agent_type_and_negative_count() -> None:
    ok, reader = _compile("""
<scenario>
  <agent x="0" y="0" n="-2" dx="0" dy="0" type="9"/>
</scenario>
""")
    assert ok
    cluster = reader.registry.agent_clusters[0]
    assert cluster.count == 0
    assert cluster.agent_type == AgentType.ADULT
    assert any("type=9" in m for m in reader.issues)
    assert any("negative" in m for m in reader.issues)


def test_unknown_tags_are_ignored() -> None:
    ok, reader = _compile("""
<scenario>
  <welcome/>
  <spotlight x="1" y="1"/>
  <waypoint id="w" x="1" y="1" r="1"/>
</scenario>
""")
    assert ok
    assert reader.registry.get_waypoint_by_name("w") is not None
    assert reader.issues == ["unknown element <spotlight> ignored"]


def test_missing_id_and_duplicates() -> None:
    ok, reader = _compile("""
<scenario>
  <waypoint x="1" y="1" r="1"/>
  <waypoint id="w" x="1" y="1" r="1"/>
  <waypoint id="w" x="9" y="9" r="9"/>
  <queue id="" x="0" y="0" direction="0"/>
  <attraction id="a" x="0" y="0" width="2" height="2" strength="1"/>
  <attraction id="a" x="5" y="5" width="2" height="2" strength="-1"/>
</scenario>
""")
    assert ok
    reg = reader.registry
    assert list(reg.waypoints) == ["w"]
    assert reg.get_waypoint_by_name("w").x == 1.0
    assert reg.waiting_queues == {}
    assert reg.get_attraction_by_name("a").strength == 1.0
    assert sum("without id" in m for m in reader.issues) == 2
    assert sum("duplicate" in m for m in reader.issues) == 2


def test_negative_sizes_are_made_positive() -> None:
    ok, reader = _compile("""
<scenario>
  <waypoint id="w" x="0" y="0" r="-2"/>
  <attraction id="a" x="0" y="0" width="-3" height="1" strength="-0.5"/>
</scenario>
""")
    assert ok
    assert reader.registry.get_waypoint_by_name("w").r == 2.0
    area = reader.registry.get_attraction_by_name("a")
    assert area.width == 3.0
    assert not area.is_attracting


def test_queue_direction_is_normalized() -> None:
    ok, reader = _compile("""
<scenario>
  <queue id="q" x="0" y="0" direction="-90"/>
  <queue id="r" x="0" y="0" direction="720"/>
</scenario>
""")
    assert ok
    q = reader.registry.get_waiting_queue_by_name("q")
    r = reader.registry.get_waiting_queue_by_name("r")
    assert isinstance(q, WaitingQueue)
    assert abs(q.direction.to_degree() - 270.0) < 1e-9
    assert abs(r.direction.to_degree()) < 1e-9


def test_nested_agent_is_rejected() -> None:
    ok, reader = _compile("""
<scenario>
  <waypoint id="a" x="0" y="0" r="1"/>
  <waypoint id="b" x="5" y="5" r="1"/>
  <agent x="0" y="0" n="1" dx="0" dy="0" type="0">
    <addwaypoint id="a"/>
    <agent x="5" y="5" n="4" dx="0" dy="0" type="0">
      <addwaypoint id="b"/>
    </agent>
    <addwaypoint id="b"/>
  </agent>
</scenario>
""")
    assert ok
    clusters = reader.registry.agent_clusters
    assert len(clusters) == 1
    assert clusters[0].count == 1
    assert [d.id for d in clusters[0].destinations] == ["a", "b"]
    assert any("nested <agent>" in m for m in reader.issues)


def test_missing_file_fails(tmp_path: Path) -> None:
    reader = ScenarioReader(verbose=False)
    assert not reader.read_from_file(tmp_path / "missing.xml")
    assert reader.stream_error
    assert reader.registry.summary()["waypoints"] == 0


def test_malformed_stream_fails_after_applying_prefix(tmp_path: Path) -> None:
    path = _write_scenario(tmp_path / "broken.xml", """
<scenario>
  <waypoint id="a" x="1" y="1" r="1"/>
  <agent x="0" y="0" n="1" dx="0" dy="0" type="0">
</scenario>
""")
    reader = ScenarioReader(verbose=False)
    assert not reader.read_from_file(path)
    assert reader.stream_error
    assert reader.registry.get_waypoint_by_name("a") is not None


def test_bad_encoding_fails(tmp_path: Path) -> None:
    path = tmp_path / "bad.xml"
    path.write_bytes(b'<?xml version="1.0" encoding="UTF-8"?>\n<scenario><waypoint id="\xff\xfe" x="1" y="1" r="1"/></scenario>')
    reader = ScenarioReader(verbose=False)
    assert not reader.read_from_file(path)


def test_empty_file_fails(tmp_path: Path) -> None:
    path = _write_scenario(tmp_path / "empty.xml", "")
    reader = ScenarioReader(verbose=False)
    assert not reader.read_from_file(path)


def test_record_stream_auto_closes_open_cluster() -> None:
    reader = ScenarioReader(verbose=False)
    records = [
        Record("start", "waypoint", {"id": "w", "x": "1", "y": "1", "r": "1"}),
        Record("start", "agent", {"x": "0", "y": "0", "n": "2", "dx": "0", "dy": "0", "type": "0"}),
        Record("start", "addwaypoint", {"id": "w"}),
    ]
    assert reader.compile(records)
    assert [d.id for d in reader.registry.agent_clusters[0].destinations] == ["w"]
    assert any("closing it" in m for m in reader.issues)


def test_record_stream_error_is_fatal() -> None:
    def records():
        yield Record("start", "waypoint", {"id": "w", "x": "1", "y": "1", "r": "1"})
        raise ScenarioStreamError("truncated")

    reader = ScenarioReader(verbose=False)
    assert not reader.compile(records())
    assert reader.stream_error == "truncated"
    assert reader.registry.get_waypoint_by_name("w") is not None


def test_namespaced_tags_are_understood() -> None:
    ok, reader = _compile("""
<scenario xmlns="urn:pedscene">
  <waypoint id="w" x="1" y="1" r="1"/>
</scenario>
""")
    assert ok
    assert reader.issues == []
    assert reader.registry.get_waypoint_by_name("w") is not None


def test_huge_obstacle_is_kept_but_not_rasterized() -> None:
    ok, reader = _compile("""
<scenario>
  <obstacle x1="0" y1="0" x2="1e12" y2="0"/>
  <obstacle x1="0" y1="1" x2="3" y2="1"/>
</scenario>
""")
    assert ok
    assert len(reader.registry.obstacles) == 2
    assert reader.registry.obstacles[0].x2 == 1e12
    assert len(reader.registry.obstacle_cells) == 4
    assert len(reader.issues) == 1
    assert "not rasterized" in reader.issues[0]


def test_underscore_digit_groups_are_not_numbers() -> None:
    ok, reader = _compile("""
<scenario>
  <waypoint id="w" x="1_000" y="2" r="1"/>
  <agent x="0" y="0" n="1_0" dx="0" dy="0" type="0"/>
</scenario>
""")
    assert ok
    assert reader.registry.get_waypoint_by_name("w").x == 0.0
    assert reader.registry.agent_clusters[0].count == 0
    assert any("x='1_000'" in m for m in reader.issues)
    assert any("n='1_0'" in m for m in reader.issues)
