"""
Pydantic models for the Skill Constellation Engine.

Catalog: skill nodes, connections, tracks, levels.
Progress: track statistics, streak records, level progress.
Layout: node positions.
"""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# =========================================================================
# Literals
# =========================================================================

Tier = Literal["foundation", "core", "advanced", "mastery"]
TrackId = Literal["explorer", "builder", "hacker", "founder"]
NodeStatus = Literal["completed", "available", "locked"]

TIER_ORDER: Dict[str, int] = {
    "foundation": 0,
    "core": 1,
    "advanced": 2,
    "mastery": 3,
}

# Node glyph diameter per tier (px), consumed by renderers.
TIER_SIZES: Dict[str, int] = {
    "foundation": 32,
    "core": 40,
    "advanced": 48,
    "mastery": 60,
}

ALL_TRACKS = "all"


# =========================================================================
# Catalog Models
# =========================================================================


class SkillNode(BaseModel):
    """One learning module in the constellation."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: str = ""
    details: List[str] = Field(default_factory=list)
    xp: int
    tier: Tier
    track: TrackId
    position: int = 0
    prerequisites: List[str] = Field(default_factory=list)
    unlocks: List[str] = Field(default_factory=list)
    estimated_time: str = ""
    rewards: List[str] = Field(default_factory=list)
    link: Optional[str] = None


class Connection(BaseModel):
    """Directed prerequisite edge ``from -> to``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")


class Quadrant(BaseModel):
    """Centre of a track's region on the map plane."""

    model_config = ConfigDict(frozen=True)

    cx: float
    cy: float


class TrackConfig(BaseModel):
    """Display and placement metadata for one track."""

    model_config = ConfigDict(frozen=True)

    id: TrackId
    label: str
    hex: str = "#FFFFFF"
    xp_per_module: int = 0
    description: str = ""
    quadrant: Quadrant


class Level(BaseModel):
    """Named XP threshold; effective over ``[min_xp, next.min_xp)``."""

    model_config = ConfigDict(frozen=True)

    name: str
    min_xp: int
    icon: str = ""


class MapSize(BaseModel):
    """Dimensions of the map canvas."""

    model_config = ConfigDict(frozen=True)

    width: float = 1100
    height: float = 950


# =========================================================================
# Progress Models
# =========================================================================


class TrackStats(BaseModel):
    """Completion statistics for one track."""

    completed: int = 0
    total: int = 0
    earned_xp: int = 0
    total_xp: int = 0
    pct: int = 0


class LevelProgress(BaseModel):
    """Where an XP total sits between its level and the next one."""

    level: Level
    next_level: Optional[Level] = None
    xp_to_next: int = 0
    pct_to_next: float = 100.0


class StreakRecord(BaseModel):
    """Consecutive-day completion streak, persisted as ``skill-streak``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    last_completion_date: str = Field(default="", alias="lastCompletionDate")
    count: int = 0


class LevelUp(BaseModel):
    """Level reached by a completion and the XP that crossed it."""

    level: Level
    xp_gained: int


class Celebration(BaseModel):
    """Feedback state emitted after a completing toggle."""

    completed_node_id: Optional[str] = None
    level_up: Optional[LevelUp] = None


class Viewport(BaseModel):
    """Pure UI pan/zoom state passed through the session."""

    zoom: float = 0.55
    pan_x: float = 0.0
    pan_y: float = 0.0


# =========================================================================
# Layout Models
# =========================================================================


class Position(BaseModel):
    """Map coordinates of a node."""

    x: float
    y: float
