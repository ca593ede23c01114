"""
Coarse-lattice A* search for orthogonal connector routes.

The search runs on an implicit, unbounded lattice of `cell`-sized steps.
Nodes are 4-connected, every step costs 1, and the heuristic is the
Manhattan distance in lattice steps. A fixed expansion budget bounds the
work, so the search always terminates even when no route exists.
"""

import heapq
import itertools
import logging
from collections.abc import Sequence
from typing import Optional

from .geometry import Rect, manhattan, snap

logger = logging.getLogger(__name__)

DEFAULT_CELL_SIZE = 40.0
DEFAULT_MAX_EXPANSIONS = 7000

XY = tuple[float, float]


def snap_to_lattice(point: XY, cell: float) -> XY:
    return (snap(point[0], cell), snap(point[1], cell))


def is_blocked(x: float, y: float, obstacles: Sequence[Rect]) -> bool:
    return any(o.contains_point(x, y) for o in obstacles)


def find_path(
    start: XY,
    goal: XY,
    obstacles: Sequence[Rect],
    cell: float = DEFAULT_CELL_SIZE,
    max_expansions: int = DEFAULT_MAX_EXPANSIONS,
) -> Optional[list[XY]]:
    """
    Find an orthogonal lattice path from `start` to `goal`.

    Start and goal are snapped to the lattice for the search; the returned
    path begins and ends with the true, unsnapped points.

    Args:
        start: Route origin in model space
        goal: Route destination in model space
        obstacles: Rectangles the path may not step into
        cell: Lattice spacing
        max_expansions: Node expansions allowed before giving up

    Returns:
        The list of points from start to goal, or None if no path was
        found within the budget
    """
    s = snap_to_lattice(start, cell)
    g = snap_to_lattice(goal, cell)
    if s == g:
        return [start, goal]

    def heuristic(node: XY) -> float:
        return manhattan(node, g) / cell

    tie = itertools.count()
    # (f, h, tie, node): equal f prefers nodes closer to the goal
    open_heap: list[tuple[float, float, int, XY]] = [(heuristic(s), heuristic(s), next(tie), s)]
    g_score: dict[XY, float] = {s: 0}
    came_from: dict[XY, XY] = {}
    closed: set[XY] = set()
    steps = ((cell, 0.0), (-cell, 0.0), (0.0, cell), (0.0, -cell))

    expansions = 0
    while open_heap and expansions < max_expansions:
        _, _, _, current = heapq.heappop(open_heap)
        if current in closed:
            continue
        expansions += 1
        if current == g:
            logger.debug("A* reached goal after %d expansions", expansions)
            return _reconstruct(came_from, current, start, goal)
        closed.add(current)

        base = g_score[current]
        for step_x, step_y in steps:
            neighbor = (current[0] + step_x, current[1] + step_y)
            if neighbor in closed or is_blocked(neighbor[0], neighbor[1], obstacles):
                continue
            tentative = base + 1
            if tentative < g_score.get(neighbor, float("inf")):
                came_from[neighbor] = current
                g_score[neighbor] = tentative
                h = heuristic(neighbor)
                heapq.heappush(open_heap, (tentative + h, h, next(tie), neighbor))

    logger.debug("A* gave up after %d expansions", expansions)
    return None


def _reconstruct(came_from: dict[XY, XY], end: XY, start: XY, goal: XY) -> list[XY]:
    path = [end]
    while path[-1] in came_from:
        path.append(came_from[path[-1]])
    path.reverse()
    path[0] = start
    path[-1] = goal
    return path
