"""
Routing strategies - recompute connector waypoints from live geometry.

- Basic: straight connectors, no interior points
- Grid: one Manhattan bend between shape centers
- Obstacle: coarse-lattice A* around every other shape

Every strategy writes through `DiagramModel.update_connector` inside one
labelled history batch, and only touches connectors whose route actually
changes, so routing is undoable and re-running it is a no-op. None of them
raise; each returns the ids of the connectors it changed.
"""

import logging
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .geometry import is_colinear
from .models import Connector, ConnectorType, Point
from .pathfinding import DEFAULT_CELL_SIZE, DEFAULT_MAX_EXPANSIONS, find_path

if TYPE_CHECKING:
    from .model import DiagramModel

logger = logging.getLogger(__name__)

DEFAULT_OBSTACLE_MARGIN = 8.0

XY = tuple[float, float]


class BendPreference(str, Enum):
    """Which leg of a Grid route comes first."""
    HORIZONTAL_FIRST = "hthenv"
    VERTICAL_FIRST = "vthenh"


def compress_colinear(points: Sequence[XY]) -> list[XY]:
    """Drop points lying exactly on the line between their neighbours."""
    if len(points) <= 2:
        return list(points)
    out = [points[0]]
    for i in range(1, len(points) - 1):
        if is_colinear(out[-1], points[i], points[i + 1]):
            continue
        out.append(points[i])
    out.append(points[-1])
    return out


def _select(model: "DiagramModel", connector_ids: Optional[Iterable[str]]) -> list[Connector]:
    if connector_ids is None:
        return list(model.connectors.values())
    return [model.connectors[i] for i in connector_ids if i in model.connectors]


def _apply_route(
    model: "DiagramModel",
    connector: Connector,
    route_type: ConnectorType,
    interior: Optional[list[XY]],
) -> bool:
    """Write a route if it differs from the current one."""
    points = [Point(x=x, y=y) for x, y in interior] if interior else None
    current = connector.points or None
    if connector.type == route_type and current == points:
        return False
    model.update_connector(connector.id, {"type": route_type, "points": points})
    return True


def route_basic(model: "DiagramModel", connector_ids: Optional[Iterable[str]] = None) -> list[str]:
    """Make connectors straight (all of them by default)."""
    changed = []
    with model.history.batch("Route Straight"):
        for connector in _select(model, connector_ids):
            if _apply_route(model, connector, ConnectorType.STRAIGHT, None):
                changed.append(connector.id)
    logger.debug("Basic routing changed %d connector(s)", len(changed))
    return changed


def grid_route_points(start: XY, end: XY, prefer: BendPreference) -> list[XY]:
    """Interior points of a center-to-center Manhattan route."""
    if start[0] == end[0] or start[1] == end[1]:
        return []
    if prefer == BendPreference.VERTICAL_FIRST:
        bend = (start[0], end[1])
    else:
        bend = (end[0], start[1])
    return compress_colinear([start, bend, end])[1:-1]


def route_grid(
    model: "DiagramModel",
    connector_ids: Optional[Iterable[str]] = None,
    prefer: BendPreference = BendPreference.HORIZONTAL_FIRST,
) -> list[str]:
    """Give connectors a single right-angle bend (all of them by default)."""
    prefer = BendPreference(prefer)
    changed = []
    with model.history.batch("Route Grid"):
        for connector in _select(model, connector_ids):
            source = model.shapes.get(connector.source)
            target = model.shapes.get(connector.target)
            if source is None or target is None:
                continue
            interior = grid_route_points(source.center(), target.center(), prefer)
            if _apply_route(model, connector, ConnectorType.ORTH, interior):
                changed.append(connector.id)
    logger.debug("Grid routing changed %d connector(s)", len(changed))
    return changed


def obstacle_route_points(
    model: "DiagramModel",
    connector: Connector,
    cell: float = DEFAULT_CELL_SIZE,
    margin: float = DEFAULT_OBSTACLE_MARGIN,
    max_expansions: int = DEFAULT_MAX_EXPANSIONS,
) -> Optional[list[XY]]:
    """
    Interior points of an obstacle-avoiding route, or None if none was found.

    The connector's own endpoint shapes are not obstacles: their centers
    are the route's start and goal.
    """
    source = model.shapes.get(connector.source)
    target = model.shapes.get(connector.target)
    if source is None or target is None:
        return None
    endpoints = {source.id, target.id}
    obstacles = [
        shape.rect.inflate(margin)
        for shape in model.shapes.values()
        if shape.id not in endpoints
    ]
    path = find_path(source.center(), target.center(), obstacles, cell, max_expansions)
    if path is None or len(path) < 2:
        return None
    return compress_colinear(path)[1:-1]


def route_obstacle(
    model: "DiagramModel",
    connector_ids: Iterable[str],
    cell: float = DEFAULT_CELL_SIZE,
    margin: float = DEFAULT_OBSTACLE_MARGIN,
    max_expansions: int = DEFAULT_MAX_EXPANSIONS,
) -> list[str]:
    """
    Route the given connectors around shapes.

    Connectors for which no path is found within the budget keep their
    existing route.
    """
    changed = []
    with model.history.batch("Route Obstacles"):
        for connector in _select(model, connector_ids):
            interior = obstacle_route_points(model, connector, cell, margin, max_expansions)
            if interior is None:
                logger.warning("No obstacle-free route for connector %s", connector.id)
                continue
            if _apply_route(model, connector, ConnectorType.ORTH, interior):
                changed.append(connector.id)
    logger.debug("Obstacle routing changed %d connector(s)", len(changed))
    return changed
