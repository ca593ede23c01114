"""
Alignment and distribution of shapes.

These functions are pure: they compute new positions and return them as
`{shape_id: {"x": ..., "y": ...}}` patches, leaving it to the caller to
apply them through the model so the change is recorded in history.
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Shape


class Alignment(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    CENTER_H = "center_h"
    TOP = "top"
    BOTTOM = "bottom"
    CENTER_V = "center_v"


class Axis(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


def align_shapes(shapes: list["Shape"], alignment: Alignment | str = Alignment.LEFT) -> dict[str, dict]:
    """
    Align shapes along an edge or a center line.

    Args:
        shapes: Shapes to align (at least two)
        alignment: One of "left", "right", "center_h", "top", "bottom", "center_v"

    Returns:
        Position patches keyed by shape id (empty if fewer than two shapes)
    """
    if len(shapes) < 2:
        return {}
    alignment = Alignment(alignment)

    if alignment == Alignment.LEFT:
        left = min(s.x for s in shapes)
        return {s.id: {"x": left} for s in shapes}

    if alignment == Alignment.RIGHT:
        right = max(s.x + s.w for s in shapes)
        return {s.id: {"x": right - s.w} for s in shapes}

    if alignment == Alignment.CENTER_H:
        mid = (min(s.x for s in shapes) + max(s.x + s.w for s in shapes)) / 2
        return {s.id: {"x": mid - s.w / 2} for s in shapes}

    if alignment == Alignment.TOP:
        top = min(s.y for s in shapes)
        return {s.id: {"y": top} for s in shapes}

    if alignment == Alignment.BOTTOM:
        bottom = max(s.y + s.h for s in shapes)
        return {s.id: {"y": bottom - s.h} for s in shapes}

    mid = (min(s.y for s in shapes) + max(s.y + s.h for s in shapes)) / 2
    return {s.id: {"y": mid - s.h / 2} for s in shapes}


def distribute_shapes(shapes: list["Shape"], axis: Axis | str = Axis.HORIZONTAL) -> dict[str, dict]:
    """
    Space shapes so the gaps between neighbours are equal.

    The outermost shapes stay put; the ones in between are moved.

    Args:
        shapes: Shapes to distribute (at least three)
        axis: "horizontal" or "vertical"

    Returns:
        Position patches for the inner shapes (empty if fewer than three)
    """
    if len(shapes) < 3:
        return {}
    axis = Axis(axis)
    pos, size = ("x", "w") if axis == Axis.HORIZONTAL else ("y", "h")

    ordered = sorted(shapes, key=lambda s: getattr(s, pos))
    first, last = ordered[0], ordered[-1]
    span = getattr(last, pos) + getattr(last, size) - getattr(first, pos)
    total = sum(getattr(s, size) for s in ordered)
    gap = (span - total) / (len(ordered) - 1)

    patches = {}
    cursor = getattr(first, pos) + getattr(first, size)
    for shape in ordered[1:-1]:
        value = cursor + gap
        patches[shape.id] = {pos: value}
        cursor = value + getattr(shape, size)
    return patches
