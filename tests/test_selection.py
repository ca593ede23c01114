from __future__ import annotations

import pytest

from diagram_core import SELECTION_CHANGED, Rect


@pytest.fixture
def selection_events(session):
    received = []
    session.events.on(SELECTION_CHANGED, received.append)
    return received


def test_selecting_shape_clears_connectors(session, add_shape):
    a = add_shape(0, 0)
    b = add_shape(200, 0)
    connector = session.model.create_connector(a.id, b.id)
    session.selection.select_connector(connector.id)

    session.selection.select_shape(a.id)

    assert session.selection.shapes == {a.id}
    assert session.selection.connectors == set()


def test_append_keeps_existing_selection(session, add_shape):
    a, b = add_shape(), add_shape()

    session.selection.select_shape(a.id)
    session.selection.select_shape(b.id, append=True)

    assert session.selection.shapes == {a.id, b.id}


def test_unknown_ids_are_ignored(session, add_shape, selection_events):
    a = add_shape()

    session.selection.select_shape("ghost")
    session.selection.set_selection([a.id, "ghost"])

    assert session.selection.shapes == {a.id}
    assert len(selection_events) == 1


def test_event_fires_only_on_real_change(session, add_shape, selection_events):
    a = add_shape()

    session.selection.set_selection([a.id])
    session.selection.set_selection([a.id])
    session.selection.select_shape(a.id)

    assert len(selection_events) == 1
    assert selection_events[0].shapes == [a.id]


def test_toggle_shape(session, add_shape):
    a = add_shape()

    session.selection.toggle_shape(a.id)
    assert session.selection.is_selected(a.id)

    session.selection.toggle_shape(a.id)
    assert not session.selection.is_selected(a.id)


def test_marquee_selects_fully_enclosed_shapes(session, add_shape):
    inside = add_shape(10, 10, 50, 50)
    partial = add_shape(80, 10, 50, 50)

    session.selection.select_marquee(Rect(0, 0, 100, 100))

    assert session.selection.shapes == {inside.id}
    assert partial.id not in session.selection.shapes


def test_deleted_shape_is_pruned(session, add_shape, selection_events):
    a, b = add_shape(), add_shape()
    session.selection.set_selection([a.id, b.id])

    session.model.delete_shapes([a.id])

    assert session.selection.shapes == {b.id}
    assert selection_events[-1].reason == "prune"


def test_undo_of_creation_prunes_selection(session):
    shape = session.model.create_shape()
    session.selection.select_shape(shape.id)

    session.undo()

    assert session.selection.shapes == set()


def test_cascaded_connector_is_pruned(session, add_shape):
    a = add_shape(0, 0)
    b = add_shape(200, 0)
    connector = session.model.create_connector(a.id, b.id)
    session.selection.select_connector(connector.id)

    session.model.delete_shapes([b.id])

    assert session.selection.connectors == set()


def test_selected_shapes_follow_z_order(session, add_shape):
    a, b = add_shape(), add_shape()
    session.selection.set_selection([b.id, a.id])

    assert [s.id for s in session.selection.selected_shapes()] == [a.id, b.id]
