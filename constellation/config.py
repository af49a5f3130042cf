"""
Configuration: layout constants and runtime settings.

``LayoutConfig`` holds every tunable of the layout engine and can be
saved to / applied from a JSON file. ``Settings`` resolves storage and
catalog locations from the environment; CLI flags override it.
"""

import json
import logging
import os
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "./data/progress.db"

ENV_DB_PATH = "CONSTELLATION_DB"
ENV_CATALOG_PATH = "CONSTELLATION_CATALOG"
ENV_LOG_LEVEL = "CONSTELLATION_LOG_LEVEL"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =========================================================================
# Layout
# =========================================================================


class LayoutConfig(BaseModel):
    """Constants for tier placement, jitter, relaxation and clamping."""

    model_config = ConfigDict(frozen=True)

    margin: float = Field(default=40.0, ge=0)

    # Tracks with more nodes than this get the wide spans.
    crowded_threshold: int = Field(default=12, ge=0)
    spread_x_wide: float = 320.0
    spread_x_narrow: float = 260.0
    spread_y_wide: float = 280.0
    spread_y_narrow: float = 220.0

    jitter_range: int = Field(default=30, gt=0)
    jitter_y_multiplier: int = Field(default=7, ge=0)

    min_distance: float = Field(default=70.0, gt=0)
    repulsion_passes: int = Field(default=5, ge=0)

    ideal_edge_length: float = Field(default=100.0, gt=0)
    attraction_threshold: float = Field(default=1.5, gt=0)
    attraction_strength: float = Field(default=0.05, ge=0)
    attraction_passes: int = Field(default=3, ge=0)


DEFAULT_LAYOUT = LayoutConfig()


def load_layout_config(path: str) -> LayoutConfig:
    """Apply a saved layout config JSON (unset keys keep their defaults)."""
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    config = LayoutConfig.model_validate(data)
    logger.info("Layout config applied from %s", path)
    return config


def save_layout_config(config: LayoutConfig, path: str) -> None:
    """Write *config* to *path* as indented JSON."""
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config.model_dump(), fh, indent=2)
    logger.info("Layout config saved → %s", path)


# =========================================================================
# Runtime settings
# =========================================================================


class Settings(BaseModel):
    """Where progress is stored and which catalog is loaded."""

    db_path: str = DEFAULT_DB_PATH
    catalog_path: Optional[str] = None
    log_level: LogLevel = "INFO"
    layout: LayoutConfig = Field(default_factory=LayoutConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``CONSTELLATION_*`` environment variables."""
        return cls(
            db_path=os.environ.get(ENV_DB_PATH, DEFAULT_DB_PATH),
            catalog_path=os.environ.get(ENV_CATALOG_PATH) or None,
            log_level=os.environ.get(ENV_LOG_LEVEL, "INFO").upper(),
        )
