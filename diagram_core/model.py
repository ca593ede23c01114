"""
Diagram model - owns shapes, connectors, groups and meta.

All mutation goes through this API so that every structural change is
recorded into History before the caller sees it, and every mutating call
bumps `meta.version` and emits a `model:changed` notification.

Unknown ids are never an error: operations on them silently do nothing and
return None, because ids may go stale between a UI event and its dispatch.
"""

import json
import logging
from collections.abc import Iterable
from typing import Any, Optional, Union

from pydantic import BaseModel

from .events import MODEL_CHANGED, EventBus, ModelChange
from .geometry import snap as snap_value
from .history import History, Op, OpKind, clone
from .models import (
    Connector,
    ConnectorStyle,
    DiagramDocument,
    MAX_ZOOM,
    MIN_SHAPE_SIZE,
    MIN_ZOOM,
    Meta,
    Point,
    Shape,
    ShapeStyle,
    generate_group_id,
)

logger = logging.getLogger(__name__)


def _field_name(model_cls: type[BaseModel], key: str) -> str:
    """Map a JSON alias (strokeWidth) to its attribute name (stroke_width)."""
    if key in model_cls.model_fields:
        return key
    for name, info in model_cls.model_fields.items():
        if info.alias == key:
            return name
    return key


def _normalize_patch(model_cls: type[BaseModel], patch: dict[str, Any]) -> dict[str, Any]:
    """Key a patch by attribute name, dropping `id` and unknown fields."""
    result = {}
    for key, value in patch.items():
        name = _field_name(model_cls, key)
        if name in model_cls.model_fields and name != "id":
            result[name] = value
    return result


def _style_patch(style_cls: type[BaseModel], patch: Union[dict, BaseModel, None]) -> dict[str, Any]:
    if patch is None:
        return {}
    if isinstance(patch, BaseModel):
        patch = patch.model_dump(exclude_unset=True)
    return {_field_name(style_cls, key): value for key, value in patch.items()}


class DiagramModel:
    """
    The editable graph of shapes and connectors.

    `shapes` iterates in z-order (first = back-most). Groups are a
    best-effort grouping of shape ids and are not covered by undo.
    """

    def __init__(self, history: History, events: EventBus):
        self.shapes: dict[str, Shape] = {}
        self.connectors: dict[str, Connector] = {}
        self.groups: dict[str, set[str]] = {}
        self.meta = Meta()
        self.history = history
        self.events = events
        history.bind(self)

    # --- Change notification ---

    def touch(
        self,
        reason: str = "unknown",
        shapes: Iterable[str] = (),
        connectors: Iterable[str] = (),
        all: bool = False,
        batch_label: Optional[str] = None,
    ):
        """Bump the version counter and announce a change."""
        self.meta.version += 1
        self.events.emit(MODEL_CHANGED, ModelChange(
            reason=reason,
            shapes=list(shapes),
            connectors=list(connectors),
            version=self.meta.version,
            all=all,
            batch_label=batch_label,
        ))

    # --- Lookups ---

    def get_shape(self, shape_id: str) -> Optional[Shape]:
        return self.shapes.get(shape_id)

    def get_connector(self, connector_id: str) -> Optional[Connector]:
        return self.connectors.get(connector_id)

    def connectors_for_shape(self, shape_id: str) -> list[Connector]:
        """All connectors attached to a shape at either end."""
        return [
            c for c in self.connectors.values()
            if c.source == shape_id or c.target == shape_id
        ]

    # --- Shapes ---

    def create_shape(self, **props: Any) -> Shape:
        """Create a shape with defaults applied for anything not given."""
        shape = Shape.model_validate(props)
        self.shapes[shape.id] = shape
        self.history.record_op(Op(OpKind.SHAPE_CREATE, shape.id, after=clone(shape)))
        self.touch("createShape", shapes=[shape.id])
        return shape

    def update_shape(self, shape_id: str, patch: dict[str, Any]) -> Optional[Shape]:
        """
        Merge `patch` into a shape.

        Style patches shallow-merge into the existing style; every other
        key replaces the field. Only the patched keys are recorded.
        """
        shape = self.shapes.get(shape_id)
        if shape is None:
            return None
        changes = _normalize_patch(Shape, patch)
        if not changes:
            return shape
        if "style" in changes:
            changes["style"] = {
                **shape.style.model_dump(),
                **_style_patch(ShapeStyle, changes["style"]),
            }
        # Validate against the full record so clamps and coercions apply
        merged = Shape.model_validate({**shape.model_dump(), **changes})

        before = {key: clone(getattr(shape, key)) for key in changes}
        for key in changes:
            setattr(shape, key, getattr(merged, key))
        after = {key: clone(getattr(shape, key)) for key in changes}

        self.history.record_op(Op(OpKind.SHAPE_UPDATE, shape_id, before=before, after=after))
        self.touch("updateShape", shapes=[shape_id])
        return shape

    def move_shapes(
        self,
        ids: Iterable[str],
        dx: float,
        dy: float,
        snap: bool = False,
        batch_label: str = "Move Shapes",
    ) -> list[str]:
        """
        Translate shapes as one atomic batch.

        With `snap`, final coordinates are rounded to the grid.
        Returns the ids that were moved.
        """
        moved = []
        with self.history.batch(batch_label):
            for shape_id in ids:
                shape = self.shapes.get(shape_id)
                if shape is None:
                    continue
                before = {"x": shape.x, "y": shape.y}
                shape.x += dx
                shape.y += dy
                if snap:
                    shape.x = snap_value(shape.x, self.meta.grid_size)
                    shape.y = snap_value(shape.y, self.meta.grid_size)
                self.history.record_op(Op(
                    OpKind.SHAPE_UPDATE, shape_id,
                    before=before, after={"x": shape.x, "y": shape.y},
                ))
                moved.append(shape_id)
        if moved:
            self.touch("moveShapes", shapes=moved)
        return moved

    def resize_shape(self, shape_id: str, w: float, h: float) -> Optional[Shape]:
        """Resize a shape, clamping both sides to the minimum size."""
        shape = self.shapes.get(shape_id)
        if shape is None:
            return None
        before = {"w": shape.w, "h": shape.h}
        shape.w = max(MIN_SHAPE_SIZE, w)
        shape.h = max(MIN_SHAPE_SIZE, h)
        self.history.record_op(Op(
            OpKind.SHAPE_UPDATE, shape_id,
            before=before, after={"w": shape.w, "h": shape.h},
        ))
        self.touch("resizeShape", shapes=[shape_id])
        return shape

    def delete_shapes(self, ids: Iterable[str]) -> list[str]:
        """
        Delete shapes and every connector attached to them, as one batch.

        Shapes are also removed from all groups (not undoable).
        Returns the ids of the deleted shapes.
        """
        removed_shapes: list[str] = []
        removed_connectors: list[str] = []
        with self.history.batch("Delete Shapes"):
            for shape_id in ids:
                shape = self.shapes.get(shape_id)
                if shape is None:
                    continue
                self.history.record_op(Op(OpKind.SHAPE_DELETE, shape_id, before=clone(shape)))
                del self.shapes[shape_id]
                removed_shapes.append(shape_id)

                for connector in self.connectors_for_shape(shape_id):
                    self.history.record_op(
                        Op(OpKind.CONNECTOR_DELETE, connector.id, before=clone(connector))
                    )
                    del self.connectors[connector.id]
                    removed_connectors.append(connector.id)

                for members in self.groups.values():
                    members.discard(shape_id)
        if removed_shapes:
            self.touch("deleteShapes", shapes=removed_shapes, connectors=removed_connectors)
        return removed_shapes

    # --- Connectors ---

    def create_connector(
        self,
        source: str,
        target: str,
        type: str = "straight",
        points: Optional[list[Any]] = None,
        style: Optional[dict[str, Any]] = None,
        id: Optional[str] = None,
    ) -> Optional[Connector]:
        """Connect two existing shapes. Returns None if either is missing."""
        if source not in self.shapes or target not in self.shapes:
            return None
        props: dict[str, Any] = {
            "source": source,
            "target": target,
            "type": type,
            "points": points,
            "style": _style_patch(ConnectorStyle, style),
        }
        if id is not None:
            props["id"] = id
        connector = Connector.model_validate(props)
        self.connectors[connector.id] = connector
        self.history.record_op(
            Op(OpKind.CONNECTOR_CREATE, connector.id, after=clone(connector))
        )
        self.touch("createConnector", connectors=[connector.id])
        return connector

    def update_connector(self, connector_id: str, patch: dict[str, Any]) -> Optional[Connector]:
        """
        Update a connector.

        Style patches shallow-merge; `points` and `type` replace wholesale.
        Endpoint changes to shapes that do not exist are ignored.
        """
        connector = self.connectors.get(connector_id)
        if connector is None:
            return None
        changes = _normalize_patch(Connector, patch)
        for end in ("source", "target"):
            if end in changes and changes[end] not in self.shapes:
                del changes[end]
        if not changes:
            return connector
        if "style" in changes:
            changes["style"] = {
                **connector.style.model_dump(),
                **_style_patch(ConnectorStyle, changes["style"]),
            }
        merged = Connector.model_validate({**connector.model_dump(), **changes})

        before = {key: clone(getattr(connector, key)) for key in changes}
        for key in changes:
            setattr(connector, key, getattr(merged, key))
        after = {key: clone(getattr(connector, key)) for key in changes}

        self.history.record_op(
            Op(OpKind.CONNECTOR_UPDATE, connector_id, before=before, after=after)
        )
        self.touch("updateConnector", connectors=[connector_id])
        return connector

    def delete_connectors(self, ids: Iterable[str]) -> list[str]:
        """Delete connectors as one batch. Returns the deleted ids."""
        removed = []
        with self.history.batch("Delete Connectors"):
            for connector_id in ids:
                connector = self.connectors.get(connector_id)
                if connector is None:
                    continue
                self.history.record_op(
                    Op(OpKind.CONNECTOR_DELETE, connector_id, before=clone(connector))
                )
                del self.connectors[connector_id]
                removed.append(connector_id)
        if removed:
            self.touch("deleteConnectors", connectors=removed)
        return removed

    # --- Layer ordering (not recorded in history) ---

    def _reorder(self, order: list[str], reason: str, ids: list[str]):
        self.shapes = {shape_id: self.shapes[shape_id] for shape_id in order}
        self.touch(reason, shapes=ids)

    def bring_to_front(self, ids: Iterable[str]):
        ids = [i for i in ids if i in self.shapes]
        if not ids:
            return
        selected = set(ids)
        order = [i for i in self.shapes if i not in selected] + [i for i in self.shapes if i in selected]
        self._reorder(order, "zOrderFront", ids)

    def send_to_back(self, ids: Iterable[str]):
        ids = [i for i in ids if i in self.shapes]
        if not ids:
            return
        selected = set(ids)
        order = [i for i in self.shapes if i in selected] + [i for i in self.shapes if i not in selected]
        self._reorder(order, "zOrderBack", ids)

    def bring_forward(self, ids: Iterable[str]):
        """Move each shape one step toward the front, past an unselected neighbour."""
        ids = [i for i in ids if i in self.shapes]
        if not ids:
            return
        selected = set(ids)
        order = list(self.shapes)
        for i in range(len(order) - 2, -1, -1):
            if order[i] in selected and order[i + 1] not in selected:
                order[i], order[i + 1] = order[i + 1], order[i]
        self._reorder(order, "zOrderForward", ids)

    def send_backward(self, ids: Iterable[str]):
        """Move each shape one step toward the back, past an unselected neighbour."""
        ids = [i for i in ids if i in self.shapes]
        if not ids:
            return
        selected = set(ids)
        order = list(self.shapes)
        for i in range(1, len(order)):
            if order[i] in selected and order[i - 1] not in selected:
                order[i], order[i - 1] = order[i - 1], order[i]
        self._reorder(order, "zOrderBackward", ids)

    # --- Groups (not recorded in history) ---

    def create_group(self, ids: Iterable[str], group_id: Optional[str] = None) -> Optional[str]:
        """Group existing shapes. Returns the group id, or None if no shape exists."""
        members = {i for i in ids if i in self.shapes}
        if not members:
            return None
        group_id = group_id or generate_group_id()
        self.groups[group_id] = members
        self.touch("group", shapes=sorted(members))
        return group_id

    def remove_group(self, group_id: str) -> bool:
        members = self.groups.pop(group_id, None)
        if members is None:
            return False
        self.touch("ungroup", shapes=sorted(members))
        return True

    def clear_groups(self):
        if not self.groups:
            return
        self.groups.clear()
        self.touch("ungroup")

    # --- Serialization ---

    def to_document(self) -> DiagramDocument:
        return DiagramDocument(
            shapes=[clone(s) for s in self.shapes.values()],
            connectors=[clone(c) for c in self.connectors.values()],
            groups=[(gid, sorted(members)) for gid, members in self.groups.items()],
            meta=clone(self.meta),
        )

    def serialize(self) -> dict:
        """Full-state snapshot as a JSON-ready dict."""
        return self.to_document().to_json_dict()

    def deserialize(self, data: Union[dict, str, DiagramDocument], replace: bool = True):
        """
        Load a serialized state.

        With `replace`, existing shapes, connectors and groups are cleared
        first. Without it, incoming records are added over the current ones;
        callers merging foreign documents must remap ids beforehand.
        Input is not validated beyond parsing.
        """
        if isinstance(data, str):
            data = json.loads(data)
        document = data if isinstance(data, DiagramDocument) else DiagramDocument.model_validate(data)

        if replace:
            self.shapes.clear()
            self.connectors.clear()
            self.groups.clear()
        for shape in document.shapes:
            self.shapes[shape.id] = clone(shape)
        for connector in document.connectors:
            self.connectors[connector.id] = clone(connector)
        for group_id, members in document.groups:
            self.groups[group_id] = set(members)

        if "meta" in document.model_fields_set:
            # Keep the local counter monotonic across reloads
            version = max(self.meta.version, document.meta.version)
            self.meta = clone(document.meta)
            self.meta.version = version
        logger.debug(
            "Loaded %d shapes, %d connectors (replace=%s)",
            len(document.shapes), len(document.connectors), replace,
        )
        self.touch("deserialize", all=True)

    # --- Meta helpers ---

    def set_zoom(self, zoom: float):
        self.meta.zoom = min(MAX_ZOOM, max(MIN_ZOOM, zoom))
        self.touch("setZoom")

    def set_pan(self, x: float, y: float):
        self.meta.pan = Point(x=x, y=y)
        self.touch("setPan")

    def set_grid_size(self, size: int):
        self.meta.grid_size = max(1, int(size))
        self.touch("setGrid")

    def reset(self):
        """Remove everything and restore the default view."""
        self.shapes.clear()
        self.connectors.clear()
        self.groups.clear()
        self.meta.pan = Point(x=0, y=0)
        self.meta.zoom = 1.0
        self.touch("resetModel", all=True)
