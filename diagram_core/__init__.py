"""
Diagram Editor Core - editable graph model, undo/redo, selection, docking and routing.

This package holds everything the editor needs to change a diagram
safely; the backend API and any UI only call into it and listen to its
change notifications.
"""

from .models import (
    # Enums
    ShapeType,
    ConnectorType,
    ArrowKind,
    Port,
    # Core models
    Point,
    ShapeStyle,
    ConnectorStyle,
    Shape,
    Connector,
    Meta,
    DiagramDocument,
    # Request models (for API)
    CreateShapeRequest,
    UpdateShapeRequest,
    MoveShapesRequest,
    ResizeShapeRequest,
    CreateConnectorRequest,
    UpdateConnectorRequest,
    IdsRequest,
    MetaRequest,
)

from .config import EditorSettings
from .events import EventBus, ModelChange, SelectionChange, MODEL_CHANGED, SELECTION_CHANGED
from .geometry import Rect
from .history import History, Batch, Op, OpKind
from .model import DiagramModel
from .selection import SelectionManager
from .docking import dock, ports, connector_endpoints
from .routing import BendPreference, route_basic, route_grid, route_obstacle, compress_colinear
from .pathfinding import find_path
from .layout import Alignment, Axis, align_shapes, distribute_shapes
from .validation import validate_model, validation_summary, ValidationIssue, IssueSeverity
from .session import EditorSession

__all__ = [
    # Enums
    "ShapeType",
    "ConnectorType",
    "ArrowKind",
    "Port",
    # Models
    "Point",
    "ShapeStyle",
    "ConnectorStyle",
    "Shape",
    "Connector",
    "Meta",
    "DiagramDocument",
    # Request models
    "CreateShapeRequest",
    "UpdateShapeRequest",
    "MoveShapesRequest",
    "ResizeShapeRequest",
    "CreateConnectorRequest",
    "UpdateConnectorRequest",
    "IdsRequest",
    "MetaRequest",
    # Session and components
    "EditorSettings",
    "EditorSession",
    "EventBus",
    "ModelChange",
    "SelectionChange",
    "MODEL_CHANGED",
    "SELECTION_CHANGED",
    "Rect",
    "History",
    "Batch",
    "Op",
    "OpKind",
    "DiagramModel",
    "SelectionManager",
    # Docking and routing
    "dock",
    "ports",
    "connector_endpoints",
    "BendPreference",
    "route_basic",
    "route_grid",
    "route_obstacle",
    "compress_colinear",
    "find_path",
    # Layout
    "Alignment",
    "Axis",
    "align_shapes",
    "distribute_shapes",
    # Validation
    "validate_model",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
]
