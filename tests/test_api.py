from __future__ import annotations

from fastapi.testclient import TestClient


def _create_shape(client: TestClient, **props) -> dict:
    response = client.post("/api/shapes", json=props)
    assert response.status_code == 200
    return response.json()["shape"]


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_and_fetch_shape(client):
    shape = _create_shape(client, type="ellipse", x=10, y=20, text="Start")

    response = client.get(f"/api/shapes/{shape['id']}")

    assert response.json()["shape"]["type"] == "ellipse"
    assert response.json()["shape"]["style"]["strokeWidth"] == 1.5


def test_invalid_shape_type_is_rejected(client):
    response = client.post("/api/shapes", json={"type": "hexagon"})

    assert response.status_code == 422


def test_missing_shape_is_404(client):
    assert client.get("/api/shapes/ghost").status_code == 404
    assert client.patch("/api/shapes/ghost", json={"text": "x"}).status_code == 404
    assert client.delete("/api/shapes/ghost").status_code == 404


def test_patch_shape_merges_style(client):
    shape = _create_shape(client, style={"stroke": "#111111"})

    response = client.patch(f"/api/shapes/{shape['id']}", json={"style": {"fill": "#0f0"}})

    style = response.json()["shape"]["style"]
    assert style["fill"] == "#00ff00"
    assert style["stroke"] == "#111111"


def test_move_and_undo_redo(client):
    a = _create_shape(client, x=0, y=0)
    b = _create_shape(client, x=100, y=0)

    response = client.post("/api/shapes/move", json={"ids": [a["id"], b["id"]], "dx": 10, "dy": 5})
    assert response.json()["moved"] == [a["id"], b["id"]]

    undo = client.post("/api/undo").json()
    assert undo == {"success": True, "label": "Move Shapes", "version": undo["version"]}
    assert client.get(f"/api/shapes/{a['id']}").json()["shape"]["x"] == 0

    assert client.post("/api/redo").json()["success"] is True
    assert client.get(f"/api/shapes/{a['id']}").json()["shape"]["x"] == 10


def test_undo_with_empty_history(client):
    assert client.post("/api/undo").json() == {"success": False, "message": "Nothing to undo"}


def test_connector_requires_existing_shapes(client):
    a = _create_shape(client)

    response = client.post("/api/connectors", json={"from": a["id"], "to": "ghost"})

    assert response.status_code == 400


def test_delete_shape_cascades_connectors(client):
    a = _create_shape(client, x=0, y=0)
    b = _create_shape(client, x=300, y=0)
    connector = client.post("/api/connectors", json={"from": a["id"], "to": b["id"]}).json()["connector"]

    client.post("/api/shapes/delete", json={"ids": [a["id"]]})

    assert client.get(f"/api/connectors/{connector['id']}").status_code == 404
    client.post("/api/undo")
    assert client.get(f"/api/connectors/{connector['id']}").json()["connector"]["from"] == a["id"]


def test_connector_endpoints(client):
    a = _create_shape(client, x=0, y=0, w=100, h=50)
    b = _create_shape(client, x=300, y=0, w=100, h=50)
    connector = client.post("/api/connectors", json={"from": a["id"], "to": b["id"]}).json()["connector"]

    response = client.get(f"/api/connectors/{connector['id']}/endpoints")

    assert response.json()["start"] == {"x": 100, "y": 25}
    assert response.json()["end"] == {"x": 300, "y": 25}


def test_grid_route_endpoint(client):
    a = _create_shape(client, x=0, y=0, w=80, h=80)
    b = _create_shape(client, x=300, y=200, w=80, h=80)
    connector = client.post("/api/connectors", json={"from": a["id"], "to": b["id"]}).json()["connector"]

    response = client.post("/api/route/grid", params={"prefer": "vthenh"})

    assert response.json()["changed"] == [connector["id"]]
    routed = client.get(f"/api/connectors/{connector['id']}").json()["connector"]
    assert routed["type"] == "orth"
    assert routed["points"] == [{"x": 40, "y": 240}]


def test_put_diagram_replaces_state(client):
    _create_shape(client)
    document = {"shapes": [{"id": "s1", "text": "Loaded"}], "connectors": []}

    response = client.put("/api/diagram", json=document)

    assert response.status_code == 200
    state = client.get("/api/diagram").json()
    assert [s["id"] for s in state["diagram"]["shapes"]] == ["s1"]
    assert state["can_undo"] is False


def test_put_invalid_diagram_is_400(client):
    response = client.put("/api/diagram", json={"shapes": [{"type": "hexagon"}]})

    assert response.status_code == 400


def test_put_malformed_json_is_400(client):
    response = client.put(
        "/api/diagram",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400


def test_meta_update_clamps_zoom(client):
    response = client.patch("/api/diagram/meta", json={"zoom": 50, "gridSize": 20})

    meta = response.json()["meta"]
    assert meta["zoom"] == 6
    assert meta["gridSize"] == 20


def test_group_and_duplicate_flow(client):
    a = _create_shape(client, x=0, y=0)
    b = _create_shape(client, x=200, y=0)
    client.post("/api/selection/shapes", json={"ids": [a["id"], b["id"]]})

    group = client.post("/api/groups").json()
    assert group["group_id"].startswith("group-")

    duplicated = client.post("/api/duplicate", json={}).json()
    assert len(duplicated["shapes"]) == 2
    selection = client.get("/api/selection").json()
    assert selection["shapes"] == sorted(duplicated["shapes"])


def test_group_needs_two_shapes(client):
    assert client.post("/api/groups").status_code == 400


def test_unknown_z_order_operation(client):
    assert client.post("/api/shapes/z-order/sideways", json={"ids": []}).status_code == 400


def test_snapshot_round_trip(client):
    shape = _create_shape(client, text="Kept")
    index = client.post("/api/snapshots", json={"label": "v1"}).json()["index"]
    client.delete(f"/api/shapes/{shape['id']}")

    response = client.post(f"/api/snapshots/{index}/restore")

    assert response.json()["success"] is True
    assert client.get(f"/api/shapes/{shape['id']}").json()["shape"]["text"] == "Kept"
    assert client.post("/api/snapshots/99/restore").status_code == 404


def test_validate_endpoint(client):
    body = client.get("/api/diagram/validate").json()

    assert body["summary"]["info"] == 1
    assert body["issues"][0]["type"] == "info"


def test_websocket_receives_model_changes(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_json() == {"type": "pong"}

        shape = _create_shape(client)
        message = websocket.receive_json()

    assert message["type"] == "model_changed"
    assert message["reason"] == "createShape"
    assert message["changed"] == {"shapes": [shape["id"]]}
