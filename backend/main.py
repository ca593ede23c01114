"""
Diagram Editor Backend - FastAPI Application

This is the main entry point for the diagram editor backend.
It provides:
- REST API over one EditorSession (shapes, connectors, undo/redo,
  selection, routing, grouping, alignment, snapshots)
- WebSocket endpoint forwarding change notifications in real time
- CORS configuration for local frontend development
"""
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from diagram_core import (
    MODEL_CHANGED,
    SELECTION_CHANGED,
    Alignment,
    ArrowKind,
    Axis,
    BendPreference,
    CreateConnectorRequest,
    CreateShapeRequest,
    EditorSession,
    EditorSettings,
    IdsRequest,
    MetaRequest,
    MoveShapesRequest,
    ResizeShapeRequest,
    ShapeType,
    UpdateConnectorRequest,
    UpdateShapeRequest,
    validation_summary,
)

from .config import ServerSettings
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    """Send log records to stdout with timestamps."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def _dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json", by_alias=True)


# --- Request models local to the API ---

class AlignRequest(BaseModel):
    alignment: Alignment = Alignment.LEFT


class DistributeRequest(BaseModel):
    axis: Axis = Axis.HORIZONTAL


class SnapshotRequest(BaseModel):
    label: str = "manual"


class DuplicateRequest(BaseModel):
    offset_x: Optional[float] = None
    offset_y: Optional[float] = None


class DockRequest(BaseModel):
    x: float
    y: float


def create_app(
    session: Optional[EditorSession] = None,
    server_settings: Optional[ServerSettings] = None,
) -> FastAPI:
    """Build the API around `session` (a fresh one by default)."""
    session = session or EditorSession()
    server_settings = server_settings or ServerSettings()
    ws_manager = WebSocketManager()

    # --- Async change notification ---
    # Bridge between the session's sync EventBus and async WebSocket broadcasts

    pending: list[tuple[str, dict]] = []
    change_event = asyncio.Event()

    def queue_model_change(change):
        pending.append((MODEL_CHANGED, change.to_dict()))
        change_event.set()

    def queue_selection_change(change):
        pending.append((SELECTION_CHANGED, change.to_dict()))
        change_event.set()

    async def change_broadcaster():
        """Background task that broadcasts queued changes to WebSocket clients."""
        while True:
            await change_event.wait()
            change_event.clear()
            batch = pending[:]
            pending.clear()
            for event, payload in batch:
                if event == MODEL_CHANGED:
                    await ws_manager.notify_model_changed(payload)
                else:
                    await ws_manager.notify_selection_changed(payload)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan handler for startup/shutdown tasks."""
        unsubscribe = [
            session.events.on(MODEL_CHANGED, queue_model_change),
            session.events.on(SELECTION_CHANGED, queue_selection_change),
        ]
        broadcaster_task = asyncio.create_task(change_broadcaster())

        yield

        for dispose in unsubscribe:
            dispose()
        broadcaster_task.cancel()
        try:
            await broadcaster_task
        except asyncio.CancelledError:
            pass

    app = FastAPI(
        title="Diagram Editor API",
        description="Backend API for the diagram editor core",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.session = session
    app.state.ws_manager = ws_manager

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=server_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "connections": ws_manager.connection_count}

    # --- Diagram State ---

    @app.get("/api/diagram")
    async def get_diagram():
        """Get the current diagram state."""
        return session.get_state()

    @app.put("/api/diagram")
    async def replace_diagram(request: Request):
        """Replace the diagram with a serialized document."""
        try:
            data = await request.json()
            session.load(data)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Failed to load diagram: {e}")
        return {"success": True, "diagram": session.model.serialize()}

    @app.post("/api/diagram/new")
    async def new_diagram():
        """Start an empty diagram."""
        session.new()
        return {"success": True, "diagram": session.model.serialize()}

    @app.patch("/api/diagram/meta")
    async def update_meta(request: MetaRequest):
        """Update grid size, zoom or pan."""
        if request.grid_size is not None:
            session.model.set_grid_size(request.grid_size)
        if request.zoom is not None:
            session.model.set_zoom(request.zoom)
        if request.pan is not None:
            session.model.set_pan(request.pan.x, request.pan.y)
        return {"success": True, "meta": _dump(session.model.meta)}

    @app.get("/api/diagram/validate")
    async def validate_current_diagram():
        """Report structural issues in the current diagram."""
        issues = session.validate()
        return {
            "success": True,
            "issues": [i.to_dict() for i in issues],
            "summary": validation_summary(issues),
        }

    # --- Undo/Redo ---

    @app.post("/api/undo")
    async def undo():
        """Undo the last action."""
        batch = session.undo()
        if batch:
            return {"success": True, "label": batch.label, "version": session.model.meta.version}
        return {"success": False, "message": "Nothing to undo"}

    @app.post("/api/redo")
    async def redo():
        """Redo the last undone action."""
        batch = session.redo()
        if batch:
            return {"success": True, "label": batch.label, "version": session.model.meta.version}
        return {"success": False, "message": "Nothing to redo"}

    @app.get("/api/history")
    async def get_history():
        """Labels of the undo and redo stacks."""
        return {"success": True, **session.history.labels()}

    # --- Shape Operations ---

    @app.post("/api/shapes")
    async def create_shape(request: CreateShapeRequest):
        """Create a new shape."""
        try:
            shape = session.model.create_shape(**request.model_dump())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "shape": _dump(shape)}

    # Fixed paths MUST be before the parameterized routes
    @app.post("/api/shapes/move")
    async def move_shapes(request: MoveShapesRequest):
        """Translate shapes as one undo step."""
        moved = session.model.move_shapes(request.ids, request.dx, request.dy, snap=request.snap)
        return {"success": bool(moved), "moved": moved}

    @app.post("/api/shapes/delete")
    async def delete_shapes(request: IdsRequest):
        """Delete shapes and their connectors as one undo step."""
        removed = session.model.delete_shapes(request.ids)
        return {"success": bool(removed), "deleted": removed}

    @app.post("/api/shapes/z-order/{operation}")
    async def reorder_shapes(operation: str, request: IdsRequest):
        """Change stacking order: front, back, forward or backward."""
        handlers = {
            "front": session.model.bring_to_front,
            "back": session.model.send_to_back,
            "forward": session.model.bring_forward,
            "backward": session.model.send_backward,
        }
        handler = handlers.get(operation)
        if handler is None:
            raise HTTPException(status_code=400, detail=f"Unknown z-order operation: {operation}")
        handler(request.ids)
        return {"success": True, "order": list(session.model.shapes)}

    @app.get("/api/shapes/{shape_id}")
    async def get_shape(shape_id: str):
        """Get a specific shape."""
        shape = session.model.get_shape(shape_id)
        if shape:
            return {"success": True, "shape": _dump(shape)}
        raise HTTPException(status_code=404, detail="Shape not found")

    @app.patch("/api/shapes/{shape_id}")
    async def update_shape(shape_id: str, request: UpdateShapeRequest):
        """Update a shape (partial)."""
        try:
            shape = session.model.update_shape(shape_id, request.model_dump(exclude_unset=True))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if shape:
            return {"success": True, "shape": _dump(shape)}
        raise HTTPException(status_code=404, detail="Shape not found")

    @app.post("/api/shapes/{shape_id}/resize")
    async def resize_shape(shape_id: str, request: ResizeShapeRequest):
        """Resize a shape (minimum 10 x 10)."""
        shape = session.model.resize_shape(shape_id, request.w, request.h)
        if shape:
            return {"success": True, "shape": _dump(shape)}
        raise HTTPException(status_code=404, detail="Shape not found")

    @app.post("/api/shapes/{shape_id}/dock")
    async def dock_point(shape_id: str, request: DockRequest):
        """Boundary point of a shape facing (x, y)."""
        point = session.dock(shape_id, (request.x, request.y))
        if point:
            return {"success": True, "point": _dump(point)}
        raise HTTPException(status_code=404, detail="Shape not found")

    @app.delete("/api/shapes/{shape_id}")
    async def delete_shape(shape_id: str):
        """Delete a shape and its connectors."""
        if session.model.delete_shapes([shape_id]):
            return {"success": True}
        raise HTTPException(status_code=404, detail="Shape not found")

    # --- Connector Operations ---

    @app.post("/api/connectors")
    async def create_connector(request: CreateConnectorRequest):
        """Create a new connector between two existing shapes."""
        try:
            connector = session.model.create_connector(
                request.source,
                request.target,
                type=request.type,
                points=request.points,
                style=request.style,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if connector is None:
            raise HTTPException(status_code=400, detail="Both endpoint shapes must exist")
        return {"success": True, "connector": _dump(connector)}

    @app.post("/api/connectors/delete")
    async def delete_connectors(request: IdsRequest):
        """Delete connectors as one undo step."""
        removed = session.model.delete_connectors(request.ids)
        return {"success": bool(removed), "deleted": removed}

    @app.get("/api/connectors/{connector_id}")
    async def get_connector(connector_id: str):
        """Get a specific connector."""
        connector = session.model.get_connector(connector_id)
        if connector:
            return {"success": True, "connector": _dump(connector)}
        raise HTTPException(status_code=404, detail="Connector not found")

    @app.get("/api/connectors/{connector_id}/endpoints")
    async def get_connector_endpoints(connector_id: str):
        """Docked start and end points of a connector."""
        endpoints = session.endpoints(connector_id)
        if endpoints is None:
            raise HTTPException(status_code=404, detail="Connector not found")
        start, end = endpoints
        return {"success": True, "start": _dump(start), "end": _dump(end)}

    @app.patch("/api/connectors/{connector_id}")
    async def update_connector(connector_id: str, request: UpdateConnectorRequest):
        """Update a connector (partial)."""
        try:
            connector = session.model.update_connector(
                connector_id, request.model_dump(exclude_unset=True)
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if connector:
            return {"success": True, "connector": _dump(connector)}
        raise HTTPException(status_code=404, detail="Connector not found")

    @app.delete("/api/connectors/{connector_id}")
    async def delete_connector(connector_id: str):
        """Delete a connector."""
        if session.model.delete_connectors([connector_id]):
            return {"success": True}
        raise HTTPException(status_code=404, detail="Connector not found")

    # --- Selection ---

    def _selection() -> dict:
        return {
            "shapes": sorted(session.selection.shapes),
            "connectors": sorted(session.selection.connectors),
        }

    @app.get("/api/selection")
    async def get_selection():
        return {"success": True, **_selection()}

    @app.post("/api/selection/shapes")
    async def select_shapes(request: IdsRequest):
        """Replace the selection with the given shapes."""
        session.selection.set_selection(request.ids)
        return {"success": True, **_selection()}

    @app.post("/api/selection/connectors")
    async def select_connectors(request: IdsRequest):
        """Replace the selection with the given connectors."""
        session.selection.set_connector_selection(request.ids)
        return {"success": True, **_selection()}

    @app.post("/api/selection/clear")
    async def clear_selection():
        session.selection.clear()
        return {"success": True, **_selection()}

    @app.get("/api/hit-test")
    async def hit_test(x: float = Query(...), y: float = Query(...)):
        """Shape and connector under a point."""
        return {"success": True, **session.hit_test(x, y)}

    # --- Routing ---

    @app.post("/api/route/basic")
    async def route_basic():
        """Make every connector straight."""
        return {"success": True, "changed": session.route_basic()}

    @app.post("/api/route/grid")
    async def route_grid(prefer: BendPreference = Query(default=BendPreference.HORIZONTAL_FIRST)):
        """Give every connector a single right-angle bend."""
        return {"success": True, "changed": session.route_grid(prefer)}

    @app.post("/api/route/obstacle")
    async def route_obstacle():
        """Route the selected connectors around shapes."""
        return {"success": True, "changed": session.route_obstacle()}

    # --- Editing Features ---

    @app.post("/api/duplicate")
    async def duplicate(request: DuplicateRequest):
        """Duplicate the selected shapes and the connectors between them."""
        new_ids = session.duplicate_selection(request.offset_x, request.offset_y)
        return {"success": bool(new_ids), "shapes": new_ids}

    @app.get("/api/groups")
    async def list_groups():
        return {"success": True, "groups": session.list_groups()}

    @app.post("/api/groups")
    async def group_selection():
        """Group the selected shapes."""
        group_id = session.group_selection()
        if group_id is None:
            raise HTTPException(status_code=400, detail="Select at least two shapes to group")
        return {"success": True, "group_id": group_id}

    @app.delete("/api/groups")
    async def ungroup_all():
        session.ungroup_all()
        return {"success": True}

    @app.post("/api/groups/{group_id}/select")
    async def select_group(group_id: str):
        if session.select_group(group_id):
            return {"success": True, **_selection()}
        raise HTTPException(status_code=404, detail="Group not found")

    @app.delete("/api/groups/{group_id}")
    async def ungroup(group_id: str):
        if session.ungroup(group_id):
            return {"success": True}
        raise HTTPException(status_code=404, detail="Group not found")

    @app.post("/api/layout/align")
    async def align(request: AlignRequest):
        """Align the selected shapes."""
        return {"success": session.align_selection(request.alignment)}

    @app.post("/api/layout/distribute")
    async def distribute(request: DistributeRequest):
        """Distribute the selected shapes evenly."""
        return {"success": session.distribute_selection(request.axis)}

    @app.post("/api/style/copy")
    async def copy_style():
        return {"success": session.copy_style()}

    @app.post("/api/style/paste")
    async def paste_style():
        changed = session.paste_style()
        return {"success": bool(changed), "shapes": changed}

    # --- Snapshots ---

    @app.post("/api/snapshots")
    async def create_snapshot(request: SnapshotRequest):
        """Archive the current diagram."""
        return {"success": True, "index": session.take_snapshot(request.label)}

    @app.get("/api/snapshots")
    async def list_snapshots():
        return {"success": True, "snapshots": session.list_snapshots()}

    @app.post("/api/snapshots/{index}/restore")
    async def restore_snapshot(index: int):
        """Restore an archived diagram (undoable)."""
        if session.restore_snapshot(index):
            return {"success": True, "diagram": session.model.serialize()}
        raise HTTPException(status_code=404, detail="Snapshot not found")

    # --- Enums for Frontend ---

    @app.get("/api/enums/shapes")
    async def get_shape_types():
        """Get available shape types."""
        return {"shapes": [s.value for s in ShapeType]}

    @app.get("/api/enums/arrows")
    async def get_arrow_kinds():
        """Get available arrowhead kinds."""
        return {"arrows": [a.value for a in ArrowKind]}

    # --- WebSocket ---

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for real-time updates.

        Clients receive model_changed and selection_changed messages.
        A text "ping" is answered with a pong.
        """
        await ws_manager.connect(websocket)
        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text('{"type": "pong"}')
        except WebSocketDisconnect:
            await ws_manager.disconnect(websocket)

    return app


app = create_app()


def run():
    """Run the API with uvicorn."""
    import uvicorn

    editor_settings = EditorSettings()
    server_settings = ServerSettings()
    configure_logging(editor_settings.log_level)
    app = create_app(EditorSession(editor_settings), server_settings)
    uvicorn.run(app, host=server_settings.host, port=server_settings.port)


# --- Run with uvicorn ---

if __name__ == "__main__":
    run()
