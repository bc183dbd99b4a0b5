from __future__ import annotations
from typing import Iterable, List, Optional, Set, Tuple
import math

import numpy as np

Cell = Tuple[int, int]

# per wall segment, and for the dense preview grid
MAX_SEGMENT_CELLS = 100_000
MAX_GRID_CELLS = 4_000_000

def _cell_of(x: float, y: float, res: float) -> Cell:
	return (int(math.floor(x / res)), int(math.floor(y / res)))

def segment_cell_count(x1: float, y1: float, x2: float, y2: float, res: float = 1.0) -> float:
	"""Number of cells the Bresenham walk visits; inf when the cell lattice overflows."""
	if res <= 0:
		res = 1.0
	if not all(math.isfinite(v / res) for v in (x1, y1, x2, y2)):
		return math.inf
	cx0, cy0 = _cell_of(x1, y1, res)
	cx1, cy1 = _cell_of(x2, y2, res)
	return max(abs(cx1 - cx0), abs(cy1 - cy0)) + 1

def rasterize_segment(x1: float, y1: float, x2: float, y2: float, res: float = 1.0,
		max_cells: Optional[int] = None) -> List[Cell]:
	"""Cells crossed by the wall segment (x1,y1)-(x2,y2), Bresenham walk on a `res` lattice.

	Raises ValueError when the walk would visit more than `max_cells` cells.
	"""
	if res <= 0:
		res = 1.0
	if max_cells is not None:
		n = segment_cell_count(x1, y1, x2, y2, res)
		if n > max_cells:
			raise ValueError(f"segment spans {n} cells (limit {max_cells})")
	cx0, cy0 = _cell_of(x1, y1, res)
	cx1, cy1 = _cell_of(x2, y2, res)
	dx, dy = abs(cx1 - cx0), -abs(cy1 - cy0)
	sx = 1 if cx0 < cx1 else -1
	sy = 1 if cy0 < cy1 else -1
	err = dx + dy
	cells: List[Cell] = []
	x, y = cx0, cy0
	while True:
		cells.append((x, y))
		if x == cx1 and y == cy1:
			break
		e2 = 2 * err
		if e2 >= dy:
			err += dy
			x += sx
		if e2 <= dx:
			err += dx
			y += sy
	return cells

def cells_to_grid(cells: Iterable[Cell], max_cells: int = MAX_GRID_CELLS) -> tuple[np.ndarray, Cell, int]:
	"""Dense 0/1 grid (rows = y) covering all cells; returns (grid, origin_cell, stride).

	When the full extent holds more than `max_cells` cells the grid is coarsened:
	each grid pixel then covers stride x stride lattice cells.
	"""
	cell_set: Set[Cell] = set(cells)
	if not cell_set:
		return np.zeros((0, 0), dtype=np.uint8), (0, 0), 1
	xs = [c[0] for c in cell_set]
	ys = [c[1] for c in cell_set]
	ox, oy = min(xs), min(ys)
	W = max(xs) - ox + 1
	H = max(ys) - oy + 1
	stride = 1
	while -(-W // stride) * -(-H // stride) > max(1, max_cells):
		stride *= 2
	grid = np.zeros((-(-H // stride), -(-W // stride)), dtype=np.uint8)
	for (i, j) in cell_set:
		grid[(j - oy) // stride, (i - ox) // stride] = 1
	return grid, (ox, oy), stride

def cell_centers(cells: Iterable[Cell], res: float) -> List[Tuple[float, float]]:
	return [((i + 0.5) * res, (j + 0.5) * res) for (i, j) in sorted(set(cells))]
