from __future__ import annotations

import pytest

from diagram_core import EditorSession, EditorSettings, History, MODEL_CHANGED
from diagram_core.history import Batch, Op, OpKind


def test_create_then_undo_removes_shape(session):
    shape = session.model.create_shape(x=10, y=10)

    batch = session.undo()

    assert batch is not None
    assert batch.label == "shape:create"
    assert shape.id not in session.model.shapes
    assert session.history.can_redo


def test_redo_restores_created_shape(session):
    shape = session.model.create_shape(x=10, y=10, text="A")
    session.undo()

    session.redo()

    assert session.model.shapes[shape.id].text == "A"
    assert not session.history.can_redo


def test_undo_all_then_redo_all_is_identity(session, add_shape, state):
    a = add_shape(0, 0)
    b = add_shape(300, 0)
    session.model.create_connector(a.id, b.id)
    session.model.update_shape(a.id, {"text": "Start", "style": {"fill": "#f00"}})
    session.model.move_shapes([a.id, b.id], 20, 15)
    session.model.resize_shape(b.id, 200, 90)
    session.model.delete_shapes([a.id])
    final = state()

    steps = 0
    while session.undo():
        steps += 1
    assert session.model.shapes == {}
    assert session.model.connectors == {}

    for _ in range(steps):
        session.redo()
    assert state() == final


def test_move_shapes_is_one_undo_step(session, add_shape):
    a = add_shape(0, 0)
    b = add_shape(100, 0)

    session.model.move_shapes([a.id, b.id], 10, 5)
    assert session.history.labels()["undo"][-1] == "Move Shapes"

    session.undo()
    assert (a.x, a.y) == (0, 0)
    assert (b.x, b.y) == (100, 0)


def test_outer_batch_absorbs_inner_batches(session, add_shape):
    a = add_shape()
    past_before = len(session.history.past)

    with session.history.batch("Outer"):
        session.model.move_shapes([a.id], 5, 5)
        session.model.create_shape()

    assert len(session.history.past) == past_before + 1
    assert session.history.past[-1].label == "Outer"
    assert len(session.history.past[-1].ops) == 2


def test_empty_batch_is_discarded(session):
    session.history.begin_batch("Nothing")
    session.history.commit_batch()

    assert not session.history.can_undo


def test_cancel_batch_drops_ops(session):
    session.history.begin_batch("Draft")
    session.model.create_shape()
    session.history.cancel_batch()

    assert not session.history.can_undo


def test_new_action_clears_redo(session):
    session.model.create_shape()
    session.undo()
    assert session.history.can_redo

    session.model.create_shape()

    assert not session.history.can_redo


def test_capacity_evicts_oldest_batch():
    session = EditorSession(EditorSettings(history_capacity=3))
    for i in range(5):
        session.model.create_shape(text=str(i))

    assert len(session.history.past) == 3
    while session.undo():
        pass
    # The two oldest creations can no longer be undone
    assert sorted(s.text for s in session.model.shapes.values()) == ["0", "1"]


def test_recorded_state_is_isolated_from_live_model(session, add_shape):
    shape = add_shape()
    session.model.update_shape(shape.id, {"style": {"fill": "#123456"}})

    shape.style.fill = "#000000"
    session.undo()

    assert shape.style.fill == "#ffffff"


def test_undo_commits_open_batch_first(session, add_shape):
    shape = add_shape(0, 0)

    session.history.begin_batch("Drag")
    session.model.move_shapes([shape.id], 40, 0)
    batch = session.undo()
    session.history.commit_batch()

    assert batch.label == "Drag"
    assert shape.id in session.model.shapes
    assert shape.x == 0
    assert session.history.labels() == {"undo": ["shape:create"], "redo": ["Drag"]}

    session.redo()
    assert shape.x == 40


def test_undo_with_nothing_recorded_returns_none(session):
    assert session.undo() is None
    assert session.redo() is None


def test_unbound_history_raises():
    history = History()
    history.past.append(Batch(label="orphan", ops=[Op(OpKind.SHAPE_DELETE, "s1")]))

    with pytest.raises(RuntimeError):
        history.undo()


def test_undo_notification_lists_affected_ids(session, add_shape):
    a = add_shape()
    b = add_shape(200, 0)
    connector = session.model.create_connector(a.id, b.id)
    session.model.delete_shapes([a.id])
    changes = []
    session.events.on(MODEL_CHANGED, changes.append)

    session.undo()

    assert changes[-1].reason == "history:undo"
    assert changes[-1].batch_label == "Delete Shapes"
    assert changes[-1].shapes == [a.id]
    assert changes[-1].connectors == [connector.id]
