"""
Docking - where a connector attaches to a shape's boundary.

1. Port priority: of the four edge-midpoint ports, take the one whose
   direction from the center best matches the direction toward the target
   (highest cosine, positive only). If that cosine reaches the alignment
   threshold, dock exactly on the port.
2. Otherwise intersect the ray with the shape's perimeter analytically,
   with one handler per shape type, and pull the result a hair toward the
   center so two docked edges meeting on a boundary do not leave a seam.
"""

import math
from collections.abc import Callable
from typing import TYPE_CHECKING, Optional, Union

from .models import Connector, Point, Port, Shape, ShapeType

if TYPE_CHECKING:
    from .model import DiagramModel

PORT_ALIGNMENT_THRESHOLD = 0.65
SEAM_EPSILON = 0.0005
ZERO_NUDGE = 1e-6

XY = tuple[float, float]
PointLike = Union[Point, XY]


def _xy(point: PointLike) -> XY:
    return point.as_tuple() if isinstance(point, Point) else (point[0], point[1])


def ports(shape: Shape) -> dict[Port, XY]:
    """The four fixed ports at the shape's edge midpoints."""
    cx, cy = shape.center()
    return {
        Port.N: (cx, shape.y),
        Port.E: (shape.x + shape.w, cy),
        Port.S: (cx, shape.y + shape.h),
        Port.W: (shape.x, cy),
    }


def port_point(shape: Shape, port: Port) -> Point:
    x, y = ports(shape)[port]
    return Point(x=x, y=y)


def _best_port(shape: Shape, dx: float, dy: float, threshold: float) -> Optional[XY]:
    cx, cy = shape.center()
    mag_d = math.hypot(dx, dy) or 1
    best: Optional[XY] = None
    best_cos = 0.0
    for px, py in ports(shape).values():
        vx, vy = px - cx, py - cy
        mag_v = math.hypot(vx, vy) or 1
        cos = (vx * dx + vy * dy) / (mag_v * mag_d)
        if cos <= 0:
            continue
        if best is None or cos > best_cos:
            best, best_cos = (px, py), cos
    if best is not None and best_cos >= threshold:
        return best
    return None


# --- Perimeter handlers, one per shape type ---

def _dock_ellipse(shape: Shape, dx: float, dy: float) -> XY:
    cx, cy = shape.center()
    rx, ry = shape.w / 2, shape.h / 2
    k = 1 / math.sqrt((dx * dx) / (rx * rx) + (dy * dy) / (ry * ry))
    k *= 1 - SEAM_EPSILON
    return (cx + dx * k, cy + dy * k)


def _dock_diamond(shape: Shape, dx: float, dy: float) -> XY:
    cx, cy = shape.center()
    denom = abs(dx) / (shape.w / 2) + abs(dy) / (shape.h / 2)
    k = 0.0 if denom == 0 else min(1.0, 1 / denom)
    k *= 1 - SEAM_EPSILON
    return (cx + dx * k, cy + dy * k)


def _dock_rect_like(shape: Shape, dx: float, dy: float) -> XY:
    cx, cy = shape.center()
    w2, h2 = shape.w / 2, shape.h / 2
    shrink = 1 - SEAM_EPSILON
    if abs(dx) * h2 > abs(dy) * w2:
        # Leaves through a vertical side
        sign = 1 if dx > 0 else -1
        scale = w2 / abs(dx)
        return (cx + sign * w2 * shrink, cy + dy * scale * shrink)
    sign = 1 if dy > 0 else -1
    scale = h2 / abs(dy)
    return (cx + dx * scale * shrink, cy + sign * h2 * shrink)


PERIMETER_HANDLERS: dict[ShapeType, Callable[[Shape, float, float], XY]] = {
    ShapeType.RECT: _dock_rect_like,
    ShapeType.PILL: _dock_rect_like,
    ShapeType.NOTE: _dock_rect_like,
    ShapeType.ELLIPSE: _dock_ellipse,
    ShapeType.DIAMOND: _dock_diamond,
}


def dock(
    shape: Shape,
    toward: PointLike,
    threshold: float = PORT_ALIGNMENT_THRESHOLD,
) -> Point:
    """
    Boundary point of `shape` facing `toward`.

    Args:
        shape: The shape to attach to
        toward: The point the connector heads for
        threshold: Minimum cosine for snapping to a port

    Returns:
        The attachment point in model space
    """
    cx, cy = shape.center()
    tx, ty = _xy(toward)
    dx, dy = tx - cx, ty - cy
    if dx == 0 and dy == 0:
        dy = ZERO_NUDGE

    port = _best_port(shape, dx, dy, threshold)
    if port is not None:
        return Point(x=port[0], y=port[1])

    x, y = PERIMETER_HANDLERS[ShapeType(shape.type)](shape, dx, dy)
    return Point(x=x, y=y)


def connector_endpoints(
    model: "DiagramModel",
    connector: Connector,
    threshold: float = PORT_ALIGNMENT_THRESHOLD,
) -> Optional[tuple[Point, Point]]:
    """
    Resolve the rendered start and end points of a connector.

    A pinned port in the connector style wins; otherwise each end docks
    toward its nearest interior waypoint, or the opposite shape's center.
    Returns None if either endpoint shape is missing.
    """
    source = model.shapes.get(connector.source)
    target = model.shapes.get(connector.target)
    if source is None or target is None:
        return None

    points = connector.points or []
    toward_start = points[0] if points else target.center()
    toward_end = points[-1] if points else source.center()

    if connector.style.from_port is not None:
        start = port_point(source, connector.style.from_port)
    else:
        start = dock(source, toward_start, threshold)
    if connector.style.to_port is not None:
        end = port_point(target, connector.style.to_port)
    else:
        end = dock(target, toward_end, threshold)
    return start, end
