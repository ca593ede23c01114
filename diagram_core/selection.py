"""
Selection manager for shapes and connectors.

Keeps two id sets. Selecting one kind (without `append`) clears the other,
and every mutator ignores ids that are not in the model. A commit step
diffs sorted id lists against the last published snapshot so
`selection:changed` fires only when the selection really changed.
"""

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .events import MODEL_CHANGED, SELECTION_CHANGED, EventBus, ModelChange, SelectionChange
from .geometry import Rect

if TYPE_CHECKING:
    from .model import DiagramModel
    from .models import Shape

logger = logging.getLogger(__name__)


class SelectionManager:
    """Tracks selected shape and connector ids for one editor session."""

    def __init__(self, model: "DiagramModel", events: EventBus):
        self.shapes: set[str] = set()
        self.connectors: set[str] = set()
        self._model = model
        self._events = events
        self._last = self._snapshot()
        self._unsubscribe = events.on(MODEL_CHANGED, self._prune)

    # --- Snapshot / Commit ---

    def _snapshot(self) -> tuple[list[str], list[str]]:
        return sorted(self.shapes), sorted(self.connectors)

    def _commit(self, reason: str) -> bool:
        now = self._snapshot()
        if now == self._last:
            return False
        self._last = now
        self._events.emit(SELECTION_CHANGED, SelectionChange(
            reason=reason, shapes=now[0], connectors=now[1],
        ))
        return True

    def _clear_all(self):
        self.shapes.clear()
        self.connectors.clear()

    # --- General ---

    def clear(self):
        if not self.shapes and not self.connectors:
            return
        self._clear_all()
        self._commit("clear")

    def is_selected(self, item_id: str) -> bool:
        return item_id in self.shapes or item_id in self.connectors

    def selected_shapes(self) -> list["Shape"]:
        """Selected shapes in z-order."""
        return [s for s in self._model.shapes.values() if s.id in self.shapes]

    # --- Shapes ---

    def select_shape(self, shape_id: str, append: bool = False):
        if shape_id not in self._model.shapes:
            return
        if not append:
            self._clear_all()
        self.shapes.add(shape_id)
        self._commit("shape")

    def toggle_shape(self, shape_id: str):
        if shape_id not in self._model.shapes:
            return
        if shape_id in self.shapes:
            self.shapes.discard(shape_id)
        else:
            self.connectors.clear()
            self.shapes.add(shape_id)
        self._commit("toggle-shape")

    def set_selection(self, ids: Iterable[str]):
        """Replace the selection with the given shapes."""
        self._clear_all()
        self.shapes.update(i for i in ids if i in self._model.shapes)
        self._commit("set-shapes")

    def select_marquee(self, rect: Rect, append: bool = False):
        """Select every shape lying entirely inside `rect`."""
        if not append:
            self._clear_all()
        for shape in self._model.shapes.values():
            if rect.contains_rect(shape.rect):
                self.shapes.add(shape.id)
        self._commit("marquee")

    # --- Connectors ---

    def select_connector(self, connector_id: str, append: bool = False):
        if connector_id not in self._model.connectors:
            return
        if not append:
            self._clear_all()
        self.connectors.add(connector_id)
        self._commit("connector")

    def toggle_connector(self, connector_id: str):
        if connector_id not in self._model.connectors:
            return
        if connector_id in self.connectors:
            self.connectors.discard(connector_id)
        else:
            self.shapes.clear()
            self.connectors.add(connector_id)
        self._commit("toggle-connector")

    def set_connector_selection(self, ids: Iterable[str]):
        """Replace the selection with the given connectors."""
        self._clear_all()
        self.connectors.update(i for i in ids if i in self._model.connectors)
        self._commit("set-connectors")

    # --- Pruning ---

    def _prune(self, change: ModelChange):
        if change.all:
            stale_shapes = {i for i in self.shapes if i not in self._model.shapes}
            stale_connectors = {i for i in self.connectors if i not in self._model.connectors}
        else:
            stale_shapes = {i for i in change.shapes if i in self.shapes and i not in self._model.shapes}
            stale_connectors = {
                i for i in change.connectors
                if i in self.connectors and i not in self._model.connectors
            }
        if not stale_shapes and not stale_connectors:
            return
        self.shapes -= stale_shapes
        self.connectors -= stale_connectors
        logger.debug("Pruned %d shape(s), %d connector(s) from selection",
                     len(stale_shapes), len(stale_connectors))
        self._commit("prune")

    def close(self):
        """Stop listening to model changes."""
        self._unsubscribe()
