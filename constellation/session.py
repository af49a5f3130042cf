"""
Session state controller.

``ConstellationSession`` owns the learner's completion set and streak,
persists them through a :class:`~constellation.db.ProgressStore`, and
exposes the derived views a renderer needs: statuses, positions, XP,
level, track statistics and a JSON-ready snapshot.

Storage is best-effort. Every store call goes through ``_best_effort``,
which logs and swallows storage failures so a broken or missing database
only ever means "no saved progress".
"""

import logging
import sqlite3
from datetime import date, datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Set, TypeVar

from pydantic import ValidationError

from constellation import progression
from constellation.catalog import Catalog, load_catalog
from constellation.config import DEFAULT_LAYOUT, LayoutConfig, Settings
from constellation.db import ProgressStore
from constellation.layout import compute_node_positions
from constellation.models import (
    ALL_TRACKS,
    TIER_SIZES,
    Celebration,
    Level,
    LevelProgress,
    LevelUp,
    NodeStatus,
    Position,
    SkillNode,
    StreakRecord,
    TrackStats,
    Viewport,
)
from constellation.status import node_status, statuses
from constellation.streak import current_streak, record_completion

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ZOOM = 0.55
TRACK_ZOOM = 1.0

_STORAGE_ERRORS = (sqlite3.Error, OSError, ValueError, ValidationError)


def utc_today() -> date:
    """Current calendar day in UTC."""
    return datetime.now(timezone.utc).date()


def open_store(db_path: str) -> Optional[ProgressStore]:
    """Open a progress store, or return ``None`` if storage is unavailable."""
    try:
        return ProgressStore(db_path)
    except _STORAGE_ERRORS as exc:
        logger.warning("Progress storage unavailable at %s: %s", db_path, exc)
        return None


class ConstellationSession:
    """One learner's view of the constellation."""

    def __init__(
        self,
        catalog: Catalog,
        store: Optional[ProgressStore] = None,
        layout_config: LayoutConfig = DEFAULT_LAYOUT,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.catalog = catalog
        self._store = store
        self._layout_config = layout_config
        self._today = today

        self._completed: Set[str] = set()
        self._streak = StreakRecord()
        if store is not None:
            self._completed = set(
                self._best_effort("load progress", store.load_progress, set())
            )
            self._streak = self._best_effort("load streak", store.load_streak, StreakRecord())
        self._positions: Optional[Mapping[str, Position]] = None
        self._selected: Optional[str] = None
        self._active_track: str = ALL_TRACKS
        self._viewport = Viewport(zoom=DEFAULT_ZOOM)
        self._celebration = Celebration()

        logger.info(
            "Session started: %d/%d completed, streak=%d.",
            self.completed_count, len(catalog), self.streak,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "ConstellationSession":
        """Load the configured catalog and open the configured store."""
        catalog = load_catalog(settings.catalog_path)
        store = open_store(settings.db_path)
        return cls(catalog, store=store, layout_config=settings.layout, **kwargs)

    # -- storage boundary ---------------------------------------------------

    def _best_effort(self, action: str, fn: Callable[[], T], default: T) -> T:
        if self._store is None:
            return default
        try:
            return fn()
        except _STORAGE_ERRORS as exc:
            logger.warning("Could not %s (%s); continuing without it.", action, exc)
            return default

    def _persist_progress(self) -> None:
        store = self._store
        if store is not None:
            snapshot = frozenset(self._completed)
            self._best_effort("save progress", lambda: store.save_progress(snapshot), None)

    def _persist_streak(self) -> None:
        store = self._store
        if store is not None:
            record = self._streak
            self._best_effort("save streak", lambda: store.save_streak(record), None)

    def close(self) -> None:
        """Release the store connection."""
        if self._store is not None:
            self._best_effort("close store", self._store.close, None)
            self._store = None

    # -- completion set -----------------------------------------------------

    @property
    def completed(self) -> FrozenSet[str]:
        return frozenset(self._completed)

    def is_completed(self, node_id: str) -> bool:
        return node_id in self._completed

    def toggle_complete(self, node_id: str) -> bool:
        """Flip completion of *node_id*; return whether it is now complete.

        Completing also records today's streak day and sets the
        celebration. Un-completing revokes the node's XP and may re-lock
        its dependents.
        """
        if node_id in self._completed:
            self._completed.discard(node_id)
            self._persist_progress()
            logger.info("Un-completed %s (xp=%d).", node_id, self.earned_xp)
            return False

        prev_xp = self.earned_xp
        self._completed.add(node_id)
        self._persist_progress()

        node = self.catalog.get(node_id)
        gained = node.xp if node is not None else 0
        prev_level = progression.level_for(self.catalog.levels, prev_xp)
        new_level = progression.level_for(self.catalog.levels, prev_xp + gained)

        self.record_completion()

        level_up = None
        if new_level.min_xp > prev_level.min_xp:
            level_up = LevelUp(level=new_level, xp_gained=gained)
            logger.info("Level up: %s → %s.", prev_level.name, new_level.name)
        self._celebration = Celebration(completed_node_id=node_id, level_up=level_up)
        logger.info("Completed %s (+%d xp, total=%d).", node_id, gained, self.earned_xp)
        return True

    def reset(self) -> None:
        """Clear all completions and the selection."""
        self._completed.clear()
        self._selected = None
        self._persist_progress()
        logger.info("Progress reset.")

    # -- streak ---------------------------------------------------------------

    def record_completion(self) -> StreakRecord:
        """Count today toward the streak (once per calendar day)."""
        updated = record_completion(self._streak, self._today())
        if updated != self._streak:
            self._streak = updated
            self._persist_streak()
        return self._streak

    @property
    def streak_record(self) -> StreakRecord:
        return self._streak

    @property
    def streak(self) -> int:
        return current_streak(self._streak, self._today())

    # -- derived views ----------------------------------------------------------

    def status(self, node_id: str) -> NodeStatus:
        return node_status(self.catalog, node_id, self._completed)

    def statuses(self) -> Dict[str, NodeStatus]:
        return statuses(self.catalog, self._completed)

    @property
    def positions(self) -> Mapping[str, Position]:
        """Layout computed on first access and reused for the session."""
        if self._positions is None:
            self._positions = MappingProxyType(
                compute_node_positions(self.catalog, self._layout_config)
            )
        return self._positions

    @property
    def completed_count(self) -> int:
        return progression.completed_count(self.catalog, self._completed)

    @property
    def earned_xp(self) -> int:
        return progression.earned_xp(self.catalog, self._completed)

    @property
    def total_xp(self) -> int:
        return progression.total_xp(self.catalog)

    @property
    def level(self) -> Level:
        return progression.level_for(self.catalog.levels, self.earned_xp)

    @property
    def next_level(self) -> Optional[Level]:
        return progression.next_level(self.catalog.levels, self.earned_xp)

    @property
    def level_progress(self) -> LevelProgress:
        return progression.level_progress(self.catalog.levels, self.earned_xp)

    def track_stats(self, track_id: str) -> TrackStats:
        return progression.track_stats(self.catalog, track_id, self._completed)

    def all_track_stats(self) -> Dict[str, TrackStats]:
        return {t: self.track_stats(t) for t in self.catalog.track_ids}

    def completed_tracks(self) -> List[str]:
        """Tracks whose every node is complete."""
        return [t for t, s in self.all_track_stats().items() if s.total and s.pct == 100]

    # -- UI pass-through state ------------------------------------------------

    @property
    def selected_node(self) -> Optional[str]:
        return self._selected

    def select(self, node_id: str) -> Optional[str]:
        """Select *node_id*, or clear the selection if it is already selected."""
        self._selected = None if self._selected == node_id else node_id
        return self._selected

    @property
    def active_track(self) -> str:
        return self._active_track

    def set_active_track(self, track_id: str) -> None:
        if track_id != ALL_TRACKS and self.catalog.track(track_id) is None:
            raise ValueError(f"unknown track '{track_id}'")
        self._active_track = track_id

    @property
    def filtered_nodes(self) -> List[SkillNode]:
        if self._active_track == ALL_TRACKS:
            return list(self.catalog.nodes)
        return self.catalog.nodes_for_track(self._active_track)

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    def set_viewport(self, zoom: float, pan_x: float, pan_y: float) -> None:
        if zoom <= 0:
            raise ValueError(f"zoom must be positive, got {zoom}")
        self._viewport = Viewport(zoom=zoom, pan_x=pan_x, pan_y=pan_y)

    def zoom_to_track(self, track_id: str) -> None:
        """Centre the viewport on a track's quadrant and filter to it."""
        track = self.catalog.track(track_id)
        if track is None:
            raise ValueError(f"unknown track '{track_id}'")
        size = self.catalog.map_size
        self.set_viewport(
            TRACK_ZOOM,
            -(track.quadrant.cx - size.width / 2) * TRACK_ZOOM,
            -(track.quadrant.cy - size.height / 2) * TRACK_ZOOM,
        )
        self._active_track = track_id

    def zoom_to_fit(self) -> None:
        self.set_viewport(DEFAULT_ZOOM, 0.0, 0.0)
        self._active_track = ALL_TRACKS

    @property
    def celebration(self) -> Celebration:
        return self._celebration

    def dismiss_celebration(self) -> None:
        self._celebration = Celebration()

    # -- export -------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready render model of the whole constellation."""
        colours = {t.id: t.hex for t in self.catalog.tracks}
        node_status_map = self.statuses()
        nodes = []
        for node in self.catalog.nodes:
            pos = self.positions.get(node.id)
            nodes.append({
                "id": node.id,
                "label": node.label,
                "track": node.track,
                "tier": node.tier,
                "xp": node.xp,
                "status": node_status_map[node.id],
                "x": pos.x if pos else None,
                "y": pos.y if pos else None,
                "size": TIER_SIZES.get(node.tier),
                "color": colours.get(node.track),
                "link": node.link,
            })
        progress = self.level_progress
        return {
            "map": self.catalog.map_size.model_dump(),
            "nodes": nodes,
            "connections": [
                c.model_dump(by_alias=True) for c in self.catalog.connections
            ],
            "completed_count": self.completed_count,
            "total_nodes": len(self.catalog),
            "earned_xp": self.earned_xp,
            "total_xp": self.total_xp,
            "level": progress.level.model_dump(),
            "next_level": progress.next_level.model_dump() if progress.next_level else None,
            "xp_to_next": progress.xp_to_next,
            "streak": self.streak,
            "tracks": {t: s.model_dump() for t, s in self.all_track_stats().items()},
            "active_track": self._active_track,
            "selected_node": self._selected,
            "viewport": self._viewport.model_dump(),
        }
