"""Editor settings, overridable through DIAGRAM_EDITOR_* environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .docking import PORT_ALIGNMENT_THRESHOLD
from .history import DEFAULT_CAPACITY
from .hit_test import DEFAULT_TOLERANCE
from .pathfinding import DEFAULT_CELL_SIZE, DEFAULT_MAX_EXPANSIONS
from .routing import DEFAULT_OBSTACLE_MARGIN


class EditorSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DIAGRAM_EDITOR_", extra="ignore")

    history_capacity: int = Field(default=DEFAULT_CAPACITY, ge=1)
    snapshot_limit: int = Field(default=100, ge=1)
    port_alignment_threshold: float = Field(default=PORT_ALIGNMENT_THRESHOLD, ge=0, le=1)
    obstacle_cell_size: float = Field(default=DEFAULT_CELL_SIZE, gt=0)
    obstacle_margin: float = Field(default=DEFAULT_OBSTACLE_MARGIN, ge=0)
    obstacle_max_expansions: int = Field(default=DEFAULT_MAX_EXPANSIONS, ge=1)
    duplicate_offset: float = 30
    hit_tolerance: float = Field(default=DEFAULT_TOLERANCE, ge=0)
    log_level: str = "INFO"
