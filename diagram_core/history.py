"""
History engine - operation-based undo/redo with batching.

Ops supported:
- shape:update / connector:update     (partial before/after patches)
- shape:create / connector:create     (full snapshot in `after`)
- shape:delete / connector:delete     (full snapshot in `before`)

Batching groups several ops into one undo step:

    history.begin_batch("Move Shapes")
    ... several mutations ...
    history.commit_batch()

or, equivalently, `with history.batch("Move Shapes"): ...`.

Every value stored in an op is a deep copy, so later live mutation of the
model never alters a recorded op.
"""

import copy
import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel

if TYPE_CHECKING:
    from .model import DiagramModel

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 500


class OpKind(str, Enum):
    SHAPE_CREATE = "shape:create"
    SHAPE_UPDATE = "shape:update"
    SHAPE_DELETE = "shape:delete"
    CONNECTOR_CREATE = "connector:create"
    CONNECTOR_UPDATE = "connector:update"
    CONNECTOR_DELETE = "connector:delete"

    @property
    def is_shape(self) -> bool:
        return self.value.startswith("shape:")


@dataclass
class Op:
    """A single reversible operation."""
    kind: OpKind
    id: str
    before: Any = None
    after: Any = None


@dataclass
class Batch:
    """A group of ops undone and redone as one unit."""
    label: str
    ops: list[Op] = field(default_factory=list)
    timestamp: float = field(default_factory=time.time)

    def affected_ids(self) -> tuple[list[str], list[str]]:
        """Shape ids and connector ids touched by this batch, in op order."""
        shapes: list[str] = []
        connectors: list[str] = []
        for op in self.ops:
            bucket = shapes if op.kind.is_shape else connectors
            if op.id not in bucket:
                bucket.append(op.id)
        return shapes, connectors


def clone(value: Any) -> Any:
    """Deep, independent copy of a model value or plain data."""
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    return copy.deepcopy(value)


def _apply_partial(target: Optional[BaseModel], patch: Optional[dict]):
    if target is None or not patch:
        return
    for key, value in patch.items():
        setattr(target, key, clone(value))


# --- Replay handlers, one per op kind ---

def _replay_shape_update(model: "DiagramModel", op: Op, reverse: bool):
    _apply_partial(model.shapes.get(op.id), op.before if reverse else op.after)


def _replay_connector_update(model: "DiagramModel", op: Op, reverse: bool):
    _apply_partial(model.connectors.get(op.id), op.before if reverse else op.after)


def _replay_shape_create(model: "DiagramModel", op: Op, reverse: bool):
    if reverse:
        model.shapes.pop(op.id, None)
    else:
        model.shapes[op.id] = clone(op.after)


def _replay_shape_delete(model: "DiagramModel", op: Op, reverse: bool):
    if reverse:
        model.shapes[op.id] = clone(op.before)
    else:
        model.shapes.pop(op.id, None)


def _replay_connector_create(model: "DiagramModel", op: Op, reverse: bool):
    if reverse:
        model.connectors.pop(op.id, None)
    else:
        model.connectors[op.id] = clone(op.after)


def _replay_connector_delete(model: "DiagramModel", op: Op, reverse: bool):
    if reverse:
        model.connectors[op.id] = clone(op.before)
    else:
        model.connectors.pop(op.id, None)


_REPLAY: dict[OpKind, Callable[["DiagramModel", Op, bool], None]] = {
    OpKind.SHAPE_CREATE: _replay_shape_create,
    OpKind.SHAPE_UPDATE: _replay_shape_update,
    OpKind.SHAPE_DELETE: _replay_shape_delete,
    OpKind.CONNECTOR_CREATE: _replay_connector_create,
    OpKind.CONNECTOR_UPDATE: _replay_connector_update,
    OpKind.CONNECTOR_DELETE: _replay_connector_delete,
}


class History:
    """
    Two-stack undo/redo history with an optional open batch.

    The history replays ops directly onto the model it is bound to; the
    model binds itself on construction.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.past: list[Batch] = []
        self.future: list[Batch] = []
        self.current_batch: Optional[Batch] = None
        self.enabled = True
        self._capacity = capacity
        self._target: Optional["DiagramModel"] = None

    def bind(self, model: "DiagramModel"):
        """Attach the model that undo/redo replays onto."""
        self._target = model

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def can_undo(self) -> bool:
        return len(self.past) > 0

    @property
    def can_redo(self) -> bool:
        return len(self.future) > 0

    # --- Recording ---

    def begin_batch(self, label: str = "Batch"):
        """Open a batch. Batches do not nest: a second call is ignored."""
        if self.current_batch is not None:
            return
        self.current_batch = Batch(label=label)

    def record_op(self, op: Op):
        """Record an op into the open batch, or as a one-op batch."""
        if not self.enabled:
            return
        if self.current_batch is not None:
            self.current_batch.ops.append(op)
        else:
            self._push(Batch(label=op.kind.value, ops=[op]))

    def commit_batch(self):
        """Close the open batch, keeping it only if it recorded something."""
        batch = self.current_batch
        if batch is None:
            return
        self.current_batch = None
        if batch.ops:
            self._push(batch)
            logger.debug("Committed batch %r (%d ops)", batch.label, len(batch.ops))

    def cancel_batch(self):
        """Discard the open batch without recording it."""
        self.current_batch = None

    @contextmanager
    def batch(self, label: str = "Batch") -> Iterator[None]:
        """
        Group the mutations of a block into one batch.

        Only commits if this call opened the batch; inside an already open
        batch the block simply contributes its ops to it.
        """
        opened = self.current_batch is None
        self.begin_batch(label)
        try:
            yield
        finally:
            if opened:
                self.commit_batch()

    def _push(self, batch: Batch):
        self.past.append(batch)
        if len(self.past) > self._capacity:
            evicted = self.past.pop(0)
            logger.debug("History full, evicted %r", evicted.label)
        self.future.clear()

    # --- Undo / Redo ---

    def undo(self) -> Optional[Batch]:
        """
        Undo the most recent batch. Returns it, or None if nothing to undo.

        A batch still open is committed first, so it is the one undone.
        """
        self.commit_batch()
        if not self.can_undo:
            return None
        batch = self.past.pop()
        self._apply_batch(batch, reverse=True)
        self.future.append(batch)
        self._announce("history:undo", batch)
        return batch

    def redo(self) -> Optional[Batch]:
        """Re-apply the most recently undone batch (an open batch is committed first)."""
        self.commit_batch()
        if not self.can_redo:
            return None
        batch = self.future.pop()
        self._apply_batch(batch, reverse=False)
        self.past.append(batch)
        self._announce("history:redo", batch)
        return batch

    def _apply_batch(self, batch: Batch, reverse: bool):
        if self._target is None:
            raise RuntimeError("History is not bound to a model")
        ops = reversed(batch.ops) if reverse else batch.ops
        self.enabled = False
        try:
            for op in ops:
                _REPLAY[op.kind](self._target, op, reverse)
        finally:
            self.enabled = True
        logger.debug("%s %r", "Undid" if reverse else "Redid", batch.label)

    def _announce(self, reason: str, batch: Batch):
        shapes, connectors = batch.affected_ids()
        self._target.touch(reason, shapes=shapes, connectors=connectors, batch_label=batch.label)

    # --- Inspection ---

    def clear(self):
        """Forget all history (used after a full reload)."""
        self.past.clear()
        self.future.clear()
        self.current_batch = None

    def labels(self) -> dict[str, list[str]]:
        """Labels of the undo and redo stacks, oldest first."""
        return {
            "undo": [b.label for b in self.past],
            "redo": [b.label for b in self.future],
        }
