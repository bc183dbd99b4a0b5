from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import LineCollection, PatchCollection
from matplotlib.patches import Circle, Rectangle

from .config import load_config
from .occupancy import cells_to_grid
from .projection import TickSnapshot
from .scene import SceneRegistry
from .simulator import Simulator


def _attraction_color(strength: float) -> Tuple[float, float, float, float]:
    # green attracts, red repels
    return (0.2, 0.7, 0.3, 0.3) if strength >= 0 else (0.85, 0.2, 0.2, 0.3)


def plot_scene(registry: SceneRegistry, snapshot: Optional[TickSnapshot] = None,
               ax=None, show_cells: bool = False):
    """Draw the compiled scene (and optionally one tick of agents). Returns (fig, ax)."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 8))
    else:
        fig = ax.figure

    if show_cells and registry.obstacle_cells:
        grid, (ox, oy), stride = cells_to_grid(registry.obstacle_cells, max_cells=registry.max_grid_cells)
        res = registry.cell_size
        extent = (ox * res, (ox + grid.shape[1] * stride) * res, oy * res, (oy + grid.shape[0] * stride) * res)
        ax.imshow(np.ma.masked_equal(grid, 0), origin="lower", extent=extent,
                  cmap="Greys", alpha=0.35, vmin=0, vmax=1, interpolation="nearest")

    if registry.obstacles:
        segs = [[(o.x1, o.y1), (o.x2, o.y2)] for o in registry.obstacles if not o.is_inert]
        ax.add_collection(LineCollection(segs, colors="black", linewidths=2.0))

    wp_patches = [Circle((w.x, w.y), max(w.r, 0.05)) for w in registry.waypoints.values()]
    if wp_patches:
        ax.add_collection(PatchCollection(wp_patches, facecolor=(0.2, 0.4, 0.9, 0.2),
                                          edgecolor=(0.2, 0.4, 0.9, 0.9)))
    for w in registry.waypoints.values():
        ax.annotate(w.id, (w.x, w.y), fontsize=8, ha="center", va="center")

    for q in registry.waiting_queues.values():
        u = q.direction.unit()
        ax.arrow(q.x, q.y, u.x * 0.8, u.y * 0.8, width=0.05, color="darkorange")
        ax.annotate(q.id, (q.x, q.y), fontsize=8, xytext=(4, 4), textcoords="offset points")

    for a in registry.attractions.values():
        x0, y0, _, _ = a.rect.aabb()
        ax.add_patch(Rectangle((x0, y0), a.width, a.height, facecolor=_attraction_color(a.strength),
                               edgecolor="none"))
        ax.annotate(a.id, (a.x, a.y), fontsize=8, ha="center", va="center")

    if snapshot is not None and snapshot.all_poses():
        poses = snapshot.all_poses()
        xy = np.array([[p.position[0], p.position[1]] for p in poses], dtype=np.float64)
        colors = [p.color for p in poses]
        ax.scatter(xy[:, 0], xy[:, 1], c=colors, s=30, zorder=3)
        for p in poses:
            yaw = p.yaw
            ax.plot([p.position[0], p.position[0] + 0.4 * np.cos(yaw)],
                    [p.position[1], p.position[1] + 0.4 * np.sin(yaw)],
                    color=p.color, linewidth=1.0, zorder=3)
        pos = {p.agent_id: p.position for p in snapshot.agents}
        links = [[g.centroid[:2], pos[m][:2]] for g in snapshot.groups() for m in g.member_ids]
        if links:
            ax.add_collection(LineCollection(links, colors="purple", linewidths=0.8, linestyles="dotted"))
        ax.set_title(f"tick {snapshot.tick}  t={snapshot.t:.2f}s  agents={len(snapshot.agents)}")

    x0, y0, x1, y1 = registry.bounds()
    pad = 1.0
    ax.set_xlim(x0 - pad, x1 + pad)
    ax.set_ylim(y0 - pad, y1 + pad)
    ax.set_aspect("equal", adjustable="box")
    return fig, ax


# ---------- CLI entry ----------

def run_preview_cli(args: argparse.Namespace) -> int:
    cfg = load_config(getattr(args, "config", None))
    sim = Simulator(cfg)
    if not sim.initialize_simulation(Path(args.scenario)):
        print(f"[pedscene preview] could not load {args.scenario}")
        return 1
    snap = None
    ticks = int(getattr(args, "ticks", 0) or 0)
    for _ in range(ticks):
        snap = sim.step()
    fig, _ = plot_scene(sim.registry, snap, show_cells=bool(getattr(args, "cells", False)))
    out = getattr(args, "out", None)
    if out:
        out_path = Path(out).resolve()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out_path, dpi=120)
        print(f"[pedscene preview] wrote {out_path}")
    else:
        plt.show()
    plt.close(fig)
    return 0


def build_preview_parser(sub) -> None:
    sp = sub.add_parser("preview", help="Plot a compiled scenario")
    sp.add_argument("scenario", type=str, help="Scenario XML file")
    sp.add_argument("--config", type=str, default=None, help="YAML config file")
    sp.add_argument("--ticks", type=int, default=0, help="Simulate this many ticks before plotting")
    sp.add_argument("--cells", action="store_true", help="Overlay obstacle occupancy cells")
    sp.add_argument("--out", type=str, default=None, help="Save to this image instead of opening a window")
    sp.set_defaults(func=run_preview_cli)
