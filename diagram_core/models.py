"""
Core data models for the diagram editor.

These models define the canonical schema for an editable diagram:
- Shapes with geometry, text and a visual style
- Connectors linking two shapes, with optional interior waypoints
- Meta holding grid, zoom, pan and the change version counter

Field Naming Convention:
- Python attributes are snake_case; JSON uses camelCase (strokeWidth, arrowEnd)
- Connectors expose `source`/`target` in Python and `from`/`to` in JSON
- Both spellings are accepted on input
"""

import re
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .geometry import Rect


SCHEMA_VERSION = 1

MIN_SHAPE_SIZE = 10.0
MIN_ZOOM = 0.1
MAX_ZOOM = 6.0

_SHORT_HEX = re.compile(r"^#([0-9a-fA-F]{3})$")


class ShapeType(str, Enum):
    """Visual kinds of shapes on the canvas."""
    RECT = "rect"
    ELLIPSE = "ellipse"
    DIAMOND = "diamond"
    PILL = "pill"
    NOTE = "note"


class ConnectorType(str, Enum):
    """How a connector's path is drawn between its endpoints."""
    STRAIGHT = "straight"
    ORTH = "orth"       # Axis-aligned segments through `points`


class ArrowKind(str, Enum):
    """Arrowhead kinds for connector endpoints."""
    NONE = "none"
    TRIANGLE = "triangle"
    OPEN = "open"
    DIAMOND = "diamond"
    CIRCLE = "circle"
    BAR = "bar"


class Port(str, Enum):
    """Fixed attachment points at the midpoint of each shape edge."""
    N = "n"
    E = "e"
    S = "s"
    W = "w"


def generate_shape_id() -> str:
    """Generate a unique shape ID."""
    return f"s{uuid.uuid4().hex[:8]}"


def generate_connector_id() -> str:
    """Generate a unique connector ID."""
    return f"c{uuid.uuid4().hex[:8]}"


def generate_group_id() -> str:
    """Generate a unique group ID."""
    return f"group-{uuid.uuid4().hex[:8]}"


def expand_hex(value: Any) -> Any:
    """Expand a 3-digit hex color (#abc) to its 6-digit form (#aabbcc)."""
    if not isinstance(value, str):
        return value
    match = _SHORT_HEX.match(value)
    if not match:
        return value
    return "#" + "".join(c * 2 for c in match.group(1))


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting snake_case too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Point(CamelModel):
    """A point in model space."""
    x: float
    y: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


class ShapeStyle(CamelModel):
    """Visual style of a shape. Unknown keys are kept for the renderer."""
    model_config = ConfigDict(extra="allow")

    fill: str = "#ffffff"
    stroke: str = "#333333"
    stroke_width: float = 1.5
    radius: float = 8
    text_color: str = "#222222"

    @field_validator("fill", "stroke", "text_color", mode="before")
    @classmethod
    def normalize_color(cls, value: Any) -> Any:
        return expand_hex(value)


class ConnectorStyle(CamelModel):
    """Visual style of a connector, including optional pinned ports."""
    model_config = ConfigDict(extra="allow")

    stroke: str = "#444444"
    stroke_width: float = 2
    arrow_start: ArrowKind = ArrowKind.NONE
    arrow_end: ArrowKind = ArrowKind.TRIANGLE
    arrow_size: float = 12
    pad_start: float = 4
    pad_end: float = 4
    from_port: Optional[Port] = None
    to_port: Optional[Port] = None

    @field_validator("stroke", mode="before")
    @classmethod
    def normalize_color(cls, value: Any) -> Any:
        return expand_hex(value)

    @field_validator("from_port", "to_port", mode="before")
    @classmethod
    def strip_shape_prefix(cls, value: Any) -> Any:
        """Accept port ids of the form '<shapeId>:<port>'."""
        if isinstance(value, str) and ":" in value:
            return value.rsplit(":", 1)[1]
        return value


class Shape(CamelModel):
    """A shape in the diagram."""
    id: str = Field(default_factory=generate_shape_id)
    type: ShapeType = ShapeType.RECT
    x: float = 100
    y: float = 100
    w: float = 140
    h: float = 70
    text: str = "Shape"
    style: ShapeStyle = Field(default_factory=ShapeStyle)
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("w", "h")
    @classmethod
    def clamp_size(cls, value: float) -> float:
        return max(MIN_SHAPE_SIZE, value)

    def center(self) -> tuple[float, float]:
        """Get the center point of the shape."""
        return (self.x + self.w / 2, self.y + self.h / 2)

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.w, self.h)


class Connector(CamelModel):
    """
    A connector between two shapes.

    `points` holds interior waypoints only; None or an empty list means the
    connector runs directly between its docked endpoints.
    """
    id: str = Field(default_factory=generate_connector_id)
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    type: ConnectorType = ConnectorType.STRAIGHT
    points: Optional[list[Point]] = None
    style: ConnectorStyle = Field(default_factory=ConnectorStyle)


class Meta(CamelModel):
    """
    Global editor state.

    Only grid_size, zoom, pan and version are interpreted by the core; the
    remaining fields belong to the presentation layer and round-trip as-is.
    """
    model_config = ConfigDict(extra="allow")

    grid_size: int = 10
    zoom: float = 1.0
    pan: Point = Field(default_factory=lambda: Point(x=0, y=0))
    version: int = 0
    background_color: Optional[str] = None
    workspace: Optional[dict[str, float]] = None
    legend: Optional[list[dict[str, Any]]] = None
    notes: Optional[str] = None

    @field_validator("grid_size")
    @classmethod
    def clamp_grid(cls, value: int) -> int:
        return max(1, value)

    @field_validator("zoom")
    @classmethod
    def clamp_zoom(cls, value: float) -> float:
        return min(MAX_ZOOM, max(MIN_ZOOM, value))


class DiagramDocument(CamelModel):
    """
    The serialized form of a diagram.
    This is what `serialize()` produces and `deserialize()` consumes.
    """
    schema_version: int = SCHEMA_VERSION
    shapes: list[Shape] = Field(default_factory=list)
    connectors: list[Connector] = Field(default_factory=list)
    groups: list[tuple[str, list[str]]] = Field(default_factory=list)
    meta: Meta = Field(default_factory=Meta)

    def to_json_dict(self) -> dict:
        """Convert to a JSON-serializable dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# --- API Request/Response Models ---

class CreateShapeRequest(CamelModel):
    """Request to create a new shape."""
    type: ShapeType = ShapeType.RECT
    x: float = 100
    y: float = 100
    w: float = 140
    h: float = 70
    text: str = "Shape"
    style: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] = Field(default_factory=dict)


class UpdateShapeRequest(CamelModel):
    """Request to update an existing shape (partial update)."""
    type: Optional[ShapeType] = None
    x: Optional[float] = None
    y: Optional[float] = None
    w: Optional[float] = None
    h: Optional[float] = None
    text: Optional[str] = None
    style: Optional[dict[str, Any]] = None
    data: Optional[dict[str, Any]] = None


class MoveShapesRequest(CamelModel):
    """Request to translate several shapes as one gesture."""
    ids: list[str]
    dx: float = 0
    dy: float = 0
    snap: bool = False


class ResizeShapeRequest(CamelModel):
    """Request to resize a shape."""
    w: float
    h: float


class CreateConnectorRequest(CamelModel):
    """Request to create a new connector."""
    source: str = Field(alias="from")
    target: str = Field(alias="to")
    type: ConnectorType = ConnectorType.STRAIGHT
    points: Optional[list[Point]] = None
    style: dict[str, Any] = Field(default_factory=dict)


class UpdateConnectorRequest(CamelModel):
    """Request to update an existing connector (partial update)."""
    type: Optional[ConnectorType] = None
    points: Optional[list[Point]] = None
    style: Optional[dict[str, Any]] = None


class IdsRequest(CamelModel):
    """Request carrying a list of ids (delete, z-order, selection)."""
    ids: list[str] = Field(default_factory=list)


class MetaRequest(CamelModel):
    """Request to update view settings."""
    grid_size: Optional[int] = None
    zoom: Optional[float] = None
    pan: Optional[Point] = None
