"""
Progression model: XP totals, level thresholds, and per-track statistics.

All functions are pure over the catalog and a set of completed node ids.
Ids in the completed set that the catalog does not know contribute nothing.
"""

import math
from typing import AbstractSet, Optional, Sequence

from constellation.catalog import Catalog
from constellation.models import Level, LevelProgress, TrackStats


def _round_half_up(value: float) -> int:
    """Round halves up, so 12.5 becomes 13 (``round`` would give 12)."""
    return int(math.floor(value + 0.5))


# =========================================================================
# XP
# =========================================================================


def total_xp(catalog: Catalog) -> int:
    """Sum of XP over every node."""
    return sum(n.xp for n in catalog.nodes)


def earned_xp(catalog: Catalog, completed: AbstractSet[str]) -> int:
    """Sum of XP over completed nodes."""
    return sum(n.xp for n in catalog.nodes if n.id in completed)


def completed_count(catalog: Catalog, completed: AbstractSet[str]) -> int:
    """Number of catalog nodes marked complete."""
    return sum(1 for n in catalog.nodes if n.id in completed)


# =========================================================================
# Levels
# =========================================================================


def level_for(levels: Sequence[Level], xp: int) -> Level:
    """Return the last level whose threshold is ``<= xp``.

    Levels must be sorted by ascending ``min_xp``; below the first
    threshold the first level is still returned.
    """
    if not levels:
        raise ValueError("level table is empty")
    current = levels[0]
    for level in levels:
        if xp >= level.min_xp:
            current = level
    return current


def next_level(levels: Sequence[Level], xp: int) -> Optional[Level]:
    """Return the first level with a threshold strictly above *xp*."""
    for level in levels:
        if level.min_xp > xp:
            return level
    return None


def level_progress(levels: Sequence[Level], xp: int) -> LevelProgress:
    """Distance from *xp* to the next level, as XP and a percentage."""
    current = level_for(levels, xp)
    upcoming = next_level(levels, xp)
    if upcoming is None:
        return LevelProgress(level=current, next_level=None, xp_to_next=0, pct_to_next=100.0)
    span = upcoming.min_xp - current.min_xp
    pct = (xp - current.min_xp) / span * 100 if span > 0 else 0.0
    return LevelProgress(
        level=current,
        next_level=upcoming,
        xp_to_next=upcoming.min_xp - xp,
        pct_to_next=max(0.0, min(pct, 100.0)),
    )


# =========================================================================
# Tracks
# =========================================================================


def track_stats(
    catalog: Catalog,
    track_id: str,
    completed: AbstractSet[str],
) -> TrackStats:
    """Completion counts and XP for one track (zeros for unknown tracks)."""
    nodes = catalog.nodes_for_track(track_id)
    done = [n for n in nodes if n.id in completed]
    total = len(nodes)
    return TrackStats(
        completed=len(done),
        total=total,
        earned_xp=sum(n.xp for n in done),
        total_xp=sum(n.xp for n in nodes),
        pct=_round_half_up(100 * len(done) / total) if total > 0 else 0,
    )
