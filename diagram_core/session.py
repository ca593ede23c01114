"""
Editor session - one independent editing context.

An EditorSession owns the event bus, history, model and selection of a
single diagram and wires them together. Several sessions can coexist in
one process (each test builds its own). Editor features that combine the
model with the selection (duplicate, grouping, alignment, style clipboard,
obstacle routing of the selected connectors) live here.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .config import EditorSettings
from .docking import connector_endpoints, dock
from .events import EventBus
from .history import Batch, History
from .hit_test import hit_test_connector, hit_test_shape
from .layout import Alignment, Axis, align_shapes, distribute_shapes
from .model import DiagramModel
from .models import DiagramDocument, Point
from .routing import BendPreference, route_basic, route_grid, route_obstacle
from .selection import SelectionManager
from .validation import ValidationIssue, validate_model

logger = logging.getLogger(__name__)


@dataclass
class NamedSnapshot:
    """A manually archived copy of the diagram (distinct from undo)."""
    label: str
    data: dict
    timestamp: float = field(default_factory=time.time)


class EditorSession:
    """
    Owns Model + History + Selection for one diagram.

    Features:
    - Undo/redo of every structural change, batched per gesture
    - Three routing strategies plus endpoint docking
    - Duplicate, grouping, align/distribute, style clipboard
    - Manual snapshot archive
    """

    def __init__(self, settings: Optional[EditorSettings] = None):
        self.settings = settings or EditorSettings()
        self.events = EventBus()
        self.history = History(capacity=self.settings.history_capacity)
        self.model = DiagramModel(self.history, self.events)
        self.selection = SelectionManager(self.model, self.events)
        self._snapshots: list[NamedSnapshot] = []
        self._style_clipboard: Optional[dict[str, Any]] = None

    # --- Document lifecycle ---

    def load(self, data: Union[dict, str, DiagramDocument]):
        """Replace the diagram with `data` and start a fresh history."""
        self.model.deserialize(data, replace=True)
        self.history.clear()
        self.selection.clear()

    def new(self):
        """Start an empty diagram."""
        self.model.reset()
        self.history.clear()
        self.selection.clear()

    def get_state(self) -> dict:
        """Full current state for API responses."""
        return {
            "diagram": self.model.serialize(),
            "selection": {
                "shapes": sorted(self.selection.shapes),
                "connectors": sorted(self.selection.connectors),
            },
            "can_undo": self.history.can_undo,
            "can_redo": self.history.can_redo,
            "history": self.history.labels(),
            "version": self.model.meta.version,
        }

    # --- Undo / Redo ---

    def undo(self) -> Optional[Batch]:
        return self.history.undo()

    def redo(self) -> Optional[Batch]:
        return self.history.redo()

    # --- Routing and docking ---

    def route_basic(self) -> list[str]:
        return route_basic(self.model)

    def route_grid(self, prefer: Union[BendPreference, str] = BendPreference.HORIZONTAL_FIRST) -> list[str]:
        return route_grid(self.model, prefer=prefer)

    def route_obstacle(self) -> list[str]:
        """Route the selected connectors around shapes."""
        if not self.selection.connectors:
            return []
        return route_obstacle(
            self.model,
            sorted(self.selection.connectors),
            cell=self.settings.obstacle_cell_size,
            margin=self.settings.obstacle_margin,
            max_expansions=self.settings.obstacle_max_expansions,
        )

    def dock(self, shape_id: str, toward: Union[Point, tuple[float, float]]) -> Optional[Point]:
        shape = self.model.shapes.get(shape_id)
        if shape is None:
            return None
        return dock(shape, toward, self.settings.port_alignment_threshold)

    def endpoints(self, connector_id: str) -> Optional[tuple[Point, Point]]:
        connector = self.model.connectors.get(connector_id)
        if connector is None:
            return None
        return connector_endpoints(self.model, connector, self.settings.port_alignment_threshold)

    def hit_test(self, x: float, y: float) -> dict[str, Optional[str]]:
        """Top-most shape and first connector under a point."""
        return {
            "shape": hit_test_shape(self.model, x, y),
            "connector": hit_test_connector(self.model, x, y, self.settings.hit_tolerance),
        }

    # --- Duplicate ---

    def duplicate_selection(
        self,
        offset_x: Optional[float] = None,
        offset_y: Optional[float] = None,
    ) -> list[str]:
        """
        Clone the selected shapes and the connectors running between them.

        Clones are offset, selected afterwards, and created in one batch.
        Returns the new shape ids.
        """
        dx = self.settings.duplicate_offset if offset_x is None else offset_x
        dy = self.settings.duplicate_offset if offset_y is None else offset_y
        originals = self.selection.selected_shapes()
        if not originals:
            return []

        id_map: dict[str, str] = {}
        with self.history.batch("Duplicate"):
            for shape in originals:
                props = shape.model_dump(exclude={"id"})
                props["x"] = shape.x + dx
                props["y"] = shape.y + dy
                id_map[shape.id] = self.model.create_shape(**props).id

            for connector in list(self.model.connectors.values()):
                if connector.source not in id_map or connector.target not in id_map:
                    continue
                points = None
                if connector.points:
                    points = [Point(x=p.x + dx, y=p.y + dy) for p in connector.points]
                self.model.create_connector(
                    id_map[connector.source],
                    id_map[connector.target],
                    type=connector.type,
                    points=points,
                    style=connector.style.model_dump(),
                )

        new_ids = list(id_map.values())
        self.selection.set_selection(new_ids)
        return new_ids

    # --- Grouping (not covered by undo) ---

    def group_selection(self) -> Optional[str]:
        """Group the selected shapes. Needs at least two."""
        ids = sorted(self.selection.shapes)
        if len(ids) < 2:
            return None
        return self.model.create_group(ids)

    def ungroup(self, group_id: str) -> bool:
        return self.model.remove_group(group_id)

    def ungroup_all(self):
        self.model.clear_groups()

    def select_group(self, group_id: str) -> bool:
        members = self.model.groups.get(group_id)
        if members is None:
            return False
        self.selection.set_selection(sorted(members))
        return True

    def list_groups(self) -> list[dict]:
        return [
            {"id": group_id, "size": len(members)}
            for group_id, members in self.model.groups.items()
        ]

    # --- Align / Distribute ---

    def _apply_positions(self, label: str, patches: dict[str, dict]) -> bool:
        if not patches:
            return False
        with self.history.batch(label):
            for shape_id, patch in patches.items():
                self.model.update_shape(shape_id, patch)
        return True

    def align_selection(self, alignment: Union[Alignment, str] = Alignment.LEFT) -> bool:
        """Align the selected shapes. Needs at least two."""
        patches = align_shapes(self.selection.selected_shapes(), alignment)
        return self._apply_positions("Align", patches)

    def distribute_selection(self, axis: Union[Axis, str] = Axis.HORIZONTAL) -> bool:
        """Distribute the selected shapes evenly. Needs at least three."""
        patches = distribute_shapes(self.selection.selected_shapes(), axis)
        return self._apply_positions("Distribute", patches)

    # --- Style clipboard ---

    def copy_style(self) -> bool:
        """Remember the style of the first selected shape."""
        shapes = self.selection.selected_shapes()
        if not shapes:
            return False
        self._style_clipboard = shapes[0].style.model_dump()
        return True

    def paste_style(self) -> list[str]:
        """Apply the copied style to every selected shape."""
        if self._style_clipboard is None:
            return []
        changed = []
        with self.history.batch("Paste Style"):
            for shape in self.selection.selected_shapes():
                self.model.update_shape(shape.id, {"style": dict(self._style_clipboard)})
                changed.append(shape.id)
        return changed

    # --- Manual snapshots ---

    def take_snapshot(self, label: str = "manual") -> int:
        """Archive the current diagram. Returns the snapshot index."""
        self._snapshots.append(NamedSnapshot(label=label, data=self.model.serialize()))
        if len(self._snapshots) > self.settings.snapshot_limit:
            self._snapshots.pop(0)
        return len(self._snapshots) - 1

    def list_snapshots(self) -> list[dict]:
        return [
            {"index": i, "label": s.label, "timestamp": s.timestamp}
            for i, s in enumerate(self._snapshots)
        ]

    def get_snapshot(self, index: int) -> Optional[NamedSnapshot]:
        if 0 <= index < len(self._snapshots):
            return self._snapshots[index]
        return None

    def restore_snapshot(self, index: int) -> bool:
        """
        Bring back an archived diagram.

        Shapes and connectors are swapped in one undoable batch; groups
        and view settings are restored directly.
        """
        snapshot = self.get_snapshot(index)
        if snapshot is None:
            return False
        document = DiagramDocument.model_validate(snapshot.data)

        with self.history.batch(f"Restore {snapshot.label}"):
            self.model.delete_connectors(list(self.model.connectors))
            self.model.delete_shapes(list(self.model.shapes))
            for shape in document.shapes:
                self.model.create_shape(**shape.model_dump())
            for connector in document.connectors:
                self.model.create_connector(
                    connector.source,
                    connector.target,
                    type=connector.type,
                    points=[p.model_dump() for p in connector.points] if connector.points else None,
                    style=connector.style.model_dump(),
                    id=connector.id,
                )

        self.model.groups = {
            group_id: {m for m in members if m in self.model.shapes}
            for group_id, members in document.groups
        }
        version = self.model.meta.version
        self.model.meta = document.meta.model_copy(deep=True)
        self.model.meta.version = version
        self.model.touch("restoreSnapshot", all=True)
        logger.info("Restored snapshot %r", snapshot.label)
        return True

    # --- Diagnostics ---

    def validate(self) -> list[ValidationIssue]:
        return validate_model(self.model)
