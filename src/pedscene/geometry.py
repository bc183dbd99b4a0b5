from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import math


@dataclass(frozen=True)
class Vec2:
    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x - other.x, self.y - other.y)

    def __mul__(self, k: float) -> "Vec2":
        return Vec2(self.x * k, self.y * k)

    __rmul__ = __mul__

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def dot(self, other: "Vec2") -> float:
        return self.x * other.x + self.y * other.y

    def normalized(self) -> "Vec2":
        n = self.length()
        if n < 1e-12:
            return Vec2(0.0, 0.0)
        return Vec2(self.x / n, self.y / n)


@dataclass(frozen=True)
class Angle:
    """Planar angle stored in radians."""

    value: float = 0.0

    @classmethod
    def from_degree(cls, deg: float) -> "Angle":
        return cls(math.radians(float(deg) % 360.0))

    @classmethod
    def from_radian(cls, rad: float) -> "Angle":
        return cls(float(rad))

    def to_degree(self) -> float:
        deg = math.degrees(self.value) % 360.0
        # -1e-17 % 360 rounds to 360.0
        return 0.0 if deg >= 360.0 else deg

    def to_radian(self) -> float:
        rad = math.atan2(math.sin(self.value), math.cos(self.value))
        return math.pi if rad <= -math.pi else rad

    def unit(self) -> Vec2:
        return Vec2(math.cos(self.value), math.sin(self.value))


@dataclass(frozen=True)
class Segment:
    p1: Vec2
    p2: Vec2

    def length(self) -> float:
        return (self.p2 - self.p1).length()

    def is_degenerate(self) -> bool:
        return self.length() < 1e-9


@dataclass(frozen=True)
class Rect:
    cx: float
    cy: float
    width: float
    height: float

    def aabb(self) -> Tuple[float, float, float, float]:
        hw, hh = 0.5 * self.width, 0.5 * self.height
        return (self.cx - hw, self.cy - hh, self.cx + hw, self.cy + hh)

    def contains(self, x: float, y: float) -> bool:
        x0, y0, x1, y1 = self.aabb()
        return (x0 <= x <= x1) and (y0 <= y <= y1)
