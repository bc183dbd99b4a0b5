from __future__ import annotations
import json, hashlib
from typing import Dict, Any, List

from .elements import WaitingQueue
from .scene import SceneRegistry

def _sha256_bytes(b: bytes) -> str:
	h = hashlib.sha256(); h.update(b); return h.hexdigest()

def _round3(x: float) -> float:
	return float(round(x, 3))

def build_scene_digest(registry: SceneRegistry) -> Dict[str, Any]:
	"""JSON-ready view of a compiled scene plus a sha256 over its canonical form."""
	obstacles = [
		[_round3(o.x1), _round3(o.y1), _round3(o.x2), _round3(o.y2)]
		for o in registry.obstacles
	]
	waypoints = [
		{"id": w.id, "xy": [_round3(w.x), _round3(w.y)], "r": _round3(w.r)}
		for w in registry.waypoints.values()
	]
	queues = [
		{"id": q.id, "xy": [_round3(q.x), _round3(q.y)], "direction_deg": _round3(q.direction.to_degree())}
		for q in registry.waiting_queues.values()
	]
	attractions = [
		{
			"id": a.id,
			"xy": [_round3(a.x), _round3(a.y)],
			"size": [_round3(a.width), _round3(a.height)],
			"strength": _round3(a.strength),
		}
		for a in registry.attractions.values()
	]
	clusters: List[Dict[str, Any]] = []
	for c in registry.agent_clusters:
		clusters.append({
			"xy": [_round3(c.x), _round3(c.y)],
			"n": int(c.count),
			"spread": [_round3(c.dx), _round3(c.dy)],
			"type": c.agent_type.name.lower(),
			# waypoints and queues may share an id, so keep the kind
			"destinations": [
				{"kind": "queue" if isinstance(d, WaitingQueue) else "waypoint", "id": d.id}
				for d in c.destinations
			],
		})

	digest: Dict[str, Any] = {
		"obstacles": obstacles,
		"waypoints": waypoints,
		"queues": queues,
		"attractions": attractions,
		"agent_clusters": clusters,
		"obstacle_cells": len(registry.obstacle_cells),
		"cell_size": registry.cell_size,
	}
	canon = json.dumps(digest, sort_keys=True, separators=(",", ":")).encode("utf-8")
	digest["sha256"] = _sha256_bytes(canon)
	return digest
