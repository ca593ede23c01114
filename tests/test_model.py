from __future__ import annotations

import json

from diagram_core import MODEL_CHANGED, ConnectorType, ShapeType


def test_create_shape_applies_defaults(session):
    shape = session.model.create_shape()

    assert shape.id.startswith("s")
    assert shape.type == ShapeType.RECT
    assert (shape.x, shape.y, shape.w, shape.h) == (100, 100, 140, 70)
    assert shape.text == "Shape"
    assert shape.style.fill == "#ffffff"


def test_short_hex_colors_are_expanded(session):
    shape = session.model.create_shape(style={"fill": "#abc", "stroke": "#123456"})

    assert shape.style.fill == "#aabbcc"
    assert shape.style.stroke == "#123456"


def test_update_shape_merges_style(session, add_shape):
    shape = add_shape(style={"stroke": "#111111"})

    session.model.update_shape(shape.id, {"text": "Renamed", "style": {"strokeWidth": 4}})

    assert shape.text == "Renamed"
    assert shape.style.stroke == "#111111"
    assert shape.style.stroke_width == 4


def test_update_shape_ignores_id_and_unknown_keys(session, add_shape):
    shape = add_shape()
    original_id = shape.id

    session.model.update_shape(shape.id, {"id": "hijack", "bogus": 1})

    assert shape.id == original_id
    assert "hijack" not in session.model.shapes


def test_update_missing_shape_returns_none(session):
    assert session.model.update_shape("nope", {"text": "x"}) is None
    assert not session.history.can_undo


def test_resize_clamps_to_minimum(session, add_shape):
    shape = add_shape()

    session.model.resize_shape(shape.id, 2, -5)

    assert (shape.w, shape.h) == (10, 10)


def test_move_with_snap_rounds_to_grid(session, add_shape):
    shape = add_shape(100, 100)

    session.model.move_shapes([shape.id], 6, 3, snap=True)

    assert (shape.x, shape.y) == (110, 100)


def test_snap_rounds_halves_up(session, add_shape):
    a = add_shape(15, 0)
    b = add_shape(25, 0)

    session.model.move_shapes([a.id, b.id], 0, 0, snap=True)

    assert (a.x, b.x) == (20, 30)


def test_move_skips_missing_ids(session, add_shape):
    shape = add_shape()

    moved = session.model.move_shapes(["missing", shape.id], 1, 1)

    assert moved == [shape.id]


def test_delete_shape_cascades_connectors(session, add_shape):
    a = add_shape(0, 0)
    b = add_shape(200, 0)
    c = add_shape(400, 0)
    ab = session.model.create_connector(a.id, b.id)
    bc = session.model.create_connector(b.id, c.id)

    session.model.delete_shapes([b.id])

    assert b.id not in session.model.shapes
    assert ab.id not in session.model.connectors
    assert bc.id not in session.model.connectors
    for connector in session.model.connectors.values():
        assert connector.source in session.model.shapes
        assert connector.target in session.model.shapes


def test_delete_then_undo_restores_shape_and_connectors(session, add_shape):
    a = add_shape(0, 0)
    b = add_shape(200, 0)
    connector = session.model.create_connector(a.id, b.id)

    session.model.delete_shapes([a.id])
    session.undo()

    assert a.id in session.model.shapes
    assert session.model.connectors[connector.id].source == a.id


def test_create_connector_requires_both_shapes(session, add_shape):
    a = add_shape()

    assert session.model.create_connector(a.id, "ghost") is None
    assert session.model.connectors == {}


def test_update_connector_ignores_missing_endpoint(session, add_shape):
    a = add_shape(0, 0)
    b = add_shape(200, 0)
    connector = session.model.create_connector(a.id, b.id)

    session.model.update_connector(connector.id, {"to": "ghost", "type": "orth"})

    assert connector.target == b.id
    assert connector.type == ConnectorType.ORTH


def test_every_mutation_bumps_version(session, add_shape):
    versions = []
    session.events.on(MODEL_CHANGED, lambda change: versions.append(change.version))

    shape = add_shape()
    session.model.update_shape(shape.id, {"text": "x"})
    session.model.move_shapes([shape.id], 1, 1)
    session.undo()

    assert versions == sorted(versions)
    assert len(set(versions)) == len(versions) == 4
    assert session.model.meta.version == versions[-1]


def test_serialize_uses_wire_names(session, add_shape):
    a = add_shape(0, 0)
    b = add_shape(200, 0)
    session.model.create_connector(a.id, b.id, style={"arrowEnd": "open"})

    data = session.model.serialize()

    connector = data["connectors"][0]
    assert connector["from"] == a.id
    assert connector["to"] == b.id
    assert connector["style"]["arrowEnd"] == "open"
    assert "strokeWidth" in data["shapes"][0]["style"]
    assert data["meta"]["gridSize"] == 10
    json.dumps(data)


def test_deserialize_round_trip(session, add_shape, state):
    a = add_shape(0, 0)
    b = add_shape(200, 0)
    session.model.create_connector(a.id, b.id, points=[{"x": 100, "y": 40}])
    session.model.create_group([a.id, b.id], group_id="g1")
    before = state()
    data = session.model.serialize()

    session.model.deserialize(json.dumps(data))

    assert state() == before
    assert session.model.groups == {"g1": {a.id, b.id}}


def test_deserialize_keeps_version_monotonic(session):
    session.model.create_shape()
    session.model.create_shape()
    current = session.model.meta.version

    session.model.deserialize({"shapes": [], "connectors": [], "meta": {"version": 0}})

    assert session.model.meta.version > current


def test_deserialize_without_meta_keeps_view(session):
    session.model.set_zoom(2.5)

    session.model.deserialize({"shapes": [{"id": "s1"}]})

    assert session.model.meta.zoom == 2.5
    assert list(session.model.shapes) == ["s1"]


def test_deserialize_merge_keeps_existing(session, add_shape):
    existing = add_shape()

    session.model.deserialize({"shapes": [{"id": "incoming"}]}, replace=False)

    assert set(session.model.shapes) == {existing.id, "incoming"}


def test_z_order_operations(session, add_shape):
    a, b, c = add_shape(), add_shape(), add_shape()

    session.model.bring_to_front([a.id])
    assert list(session.model.shapes) == [b.id, c.id, a.id]

    session.model.send_to_back([a.id])
    assert list(session.model.shapes) == [a.id, b.id, c.id]

    session.model.bring_forward([a.id])
    assert list(session.model.shapes) == [b.id, a.id, c.id]

    session.model.send_backward([c.id])
    assert list(session.model.shapes) == [b.id, c.id, a.id]


def test_deleted_shape_leaves_groups(session, add_shape):
    a, b = add_shape(), add_shape()
    group_id = session.model.create_group([a.id, b.id])

    session.model.delete_shapes([a.id])

    assert session.model.groups[group_id] == {b.id}


def test_view_setters_clamp(session):
    session.model.set_zoom(100)
    assert session.model.meta.zoom == 6

    session.model.set_zoom(0)
    assert session.model.meta.zoom == 0.1

    session.model.set_grid_size(0)
    assert session.model.meta.grid_size == 1


def test_reset_clears_everything(session, add_shape):
    add_shape()
    session.model.set_pan(50, 60)

    session.model.reset()

    assert session.model.shapes == {}
    assert session.model.meta.pan.x == 0
