"""
Geometry helpers - pure functions over rectangles and points.

Points are plain (x, y) tuples here so the routing search can hash them
cheaply; the pydantic `Point` model is only used at the model boundary.
"""

import math
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class Rect:
    """An axis-aligned rectangle (x, y = top-left corner)."""
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def center(self) -> tuple[float, float]:
        return (self.x + self.w / 2, self.y + self.h / 2)

    def contains_point(self, x: float, y: float) -> bool:
        """Inclusive containment test (edges count as inside)."""
        return self.x <= x <= self.right and self.y <= y <= self.bottom

    def contains_rect(self, other: "Rect") -> bool:
        return (
            other.x >= self.x
            and other.y >= self.y
            and other.right <= self.right
            and other.bottom <= self.bottom
        )

    def intersects(self, other: "Rect") -> bool:
        return not (
            self.right < other.x
            or other.right < self.x
            or self.bottom < other.y
            or other.bottom < self.y
        )

    def inflate(self, amount: float) -> "Rect":
        """Grow the rectangle by `amount` on every side."""
        return Rect(self.x - amount, self.y - amount, self.w + amount * 2, self.h + amount * 2)


def bounding_rect(rects: Iterable[Rect]) -> Rect:
    """Smallest rectangle enclosing all `rects` (zero rect if empty)."""
    rects = list(rects)
    if not rects:
        return Rect(0, 0, 0, 0)
    min_x = min(r.x for r in rects)
    min_y = min(r.y for r in rects)
    max_x = max(r.right for r in rects)
    max_y = max(r.bottom for r in rects)
    return Rect(min_x, min_y, max_x - min_x, max_y - min_y)


def snap(value: float, grid: float) -> float:
    """Round `value` to the nearest multiple of `grid` (halves round up)."""
    if grid <= 0:
        return value
    return math.floor(value / grid + 0.5) * grid


def distance(a: tuple[float, float], b: tuple[float, float]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def manhattan(a: tuple[float, float], b: tuple[float, float]) -> float:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def point_segment_distance(
    p: tuple[float, float],
    a: tuple[float, float],
    b: tuple[float, float],
) -> float:
    """Shortest distance from point `p` to the segment `a`-`b`."""
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    if dx == 0 and dy == 0:
        return distance(p, a)
    t = ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / (dx * dx + dy * dy)
    t = max(0.0, min(1.0, t))
    return distance(p, (a[0] + t * dx, a[1] + t * dy))


def is_colinear(
    a: tuple[float, float],
    b: tuple[float, float],
    c: tuple[float, float],
) -> bool:
    """True if `b` lies exactly on the line through `a` and `c`."""
    return (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0]) == 0
