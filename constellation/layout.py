"""
Deterministic star-map layout.

Phases, executed in order:

1. Quadrant + tier placement: tiers spread along x, nodes of a tier
   along y, around the track's quadrant centre.
2. Jitter derived from the node id's character codes (no RNG).
3. Repulsion relaxation over all node pairs.
4. Attraction relaxation over connections.
5. Clamping to the map margin.

The pairwise passes update positions in place, so every pair sees the
moves made by the pairs before it; iteration order is part of the output.
Repulsion is O(n²) per pass, fine for a catalog of ~66 nodes but a scaling
limit for much larger graphs.
"""

import logging
import math
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from constellation.catalog import Catalog
from constellation.config import DEFAULT_LAYOUT, LayoutConfig
from constellation.models import TIER_ORDER, Connection, MapSize, Position, SkillNode
from constellation.utils import timed

logger = logging.getLogger(__name__)


# =========================================================================
# Placement
# =========================================================================


def id_hash(node_id: str) -> int:
    """Sum of character codes of *node_id*."""
    return sum(ord(c) for c in node_id)


def jitter(node_id: str, config: LayoutConfig = DEFAULT_LAYOUT) -> Tuple[int, int]:
    """Per-node ``(jx, jy)`` offset in ``[-range/2, range/2)``."""
    h = id_hash(node_id)
    half = config.jitter_range // 2
    jx = (h % config.jitter_range) - half
    jy = ((h * config.jitter_y_multiplier) % config.jitter_range) - half
    return jx, jy


def _group_by_tier(nodes: Sequence[SkillNode]) -> List[List[SkillNode]]:
    """Group nodes by tier, tiers in rank order, nodes by ``position``."""
    tiers: Dict[str, List[SkillNode]] = defaultdict(list)
    for node in nodes:
        tiers[node.tier].append(node)
    ordered = sorted(tiers, key=lambda t: TIER_ORDER.get(t, len(TIER_ORDER)))
    return [sorted(tiers[t], key=lambda n: n.position) for t in ordered]


def base_positions(
    catalog: Catalog,
    config: LayoutConfig = DEFAULT_LAYOUT,
) -> Tuple[List[str], np.ndarray]:
    """Return placement-order ids and their ``(N, 2)`` clamped base coords."""
    ids: List[str] = []
    rows: List[Tuple[float, float]] = []

    for track in catalog.tracks:
        nodes = catalog.nodes_for_track(track.id)
        if not nodes:
            continue
        crowded = len(nodes) > config.crowded_threshold
        spread_x = config.spread_x_wide if crowded else config.spread_x_narrow
        spread_y = config.spread_y_wide if crowded else config.spread_y_narrow

        groups = _group_by_tier(nodes)
        x_den = max(len(groups) - 1, 1)
        for ti, tier_nodes in enumerate(groups):
            x_offset = (ti / x_den - 0.5) * spread_x
            count = len(tier_nodes)
            for ni, node in enumerate(tier_nodes):
                y_offset = 0.0 if count == 1 else (ni / (count - 1) - 0.5) * spread_y
                jx, jy = jitter(node.id, config)
                ids.append(node.id)
                rows.append((
                    track.quadrant.cx + x_offset + jx,
                    track.quadrant.cy + y_offset + jy,
                ))

    placed = set(ids)
    orphans = [n.id for n in catalog.nodes if n.id not in placed]
    if orphans:
        logger.warning("%d node(s) on unknown tracks were not placed: %s",
                       len(orphans), ", ".join(orphans))

    coords = np.array(rows, dtype=np.float64).reshape(-1, 2)
    clamp(coords, catalog.map_size, config)
    return ids, coords


# =========================================================================
# Relaxation
# =========================================================================


def apply_repulsion(coords: np.ndarray, config: LayoutConfig = DEFAULT_LAYOUT) -> None:
    """Push apart every pair closer than ``min_distance`` (in place)."""
    n = coords.shape[0]
    min_dist = config.min_distance
    for _ in range(config.repulsion_passes):
        for i in range(n):
            for j in range(i + 1, n):
                dx = coords[j, 0] - coords[i, 0]
                dy = coords[j, 1] - coords[i, 1]
                dist = math.sqrt(dx * dx + dy * dy)
                if 0 < dist < min_dist:
                    push = (min_dist - dist) / 2
                    nx = dx / dist * push
                    ny = dy / dist * push
                    coords[i, 0] -= nx
                    coords[i, 1] -= ny
                    coords[j, 0] += nx
                    coords[j, 1] += ny


def apply_attraction(
    coords: np.ndarray,
    index: Dict[str, int],
    connections: Sequence[Connection],
    config: LayoutConfig = DEFAULT_LAYOUT,
) -> None:
    """Pull together connected nodes farther than the slack distance."""
    ideal = config.ideal_edge_length
    limit = ideal * config.attraction_threshold
    for _ in range(config.attraction_passes):
        for conn in connections:
            a = index.get(conn.from_id)
            b = index.get(conn.to_id)
            if a is None or b is None:
                continue
            dx = coords[b, 0] - coords[a, 0]
            dy = coords[b, 1] - coords[a, 1]
            dist = math.sqrt(dx * dx + dy * dy)
            if dist > limit:
                pull = (dist - ideal) * config.attraction_strength
                nx = dx / dist * pull
                ny = dy / dist * pull
                coords[a, 0] += nx
                coords[a, 1] += ny
                coords[b, 0] -= nx
                coords[b, 1] -= ny


def clamp(
    coords: np.ndarray,
    map_size: Optional[MapSize] = None,
    config: LayoutConfig = DEFAULT_LAYOUT,
) -> np.ndarray:
    """Clamp coordinates to ``[margin, dim - margin]`` in place."""
    size = map_size or MapSize()
    m = config.margin
    np.clip(coords[:, 0], m, size.width - m, out=coords[:, 0])
    np.clip(coords[:, 1], m, size.height - m, out=coords[:, 1])
    return coords


# =========================================================================
# Entry point
# =========================================================================


def compute_node_positions(
    catalog: Catalog,
    config: LayoutConfig = DEFAULT_LAYOUT,
) -> Dict[str, Position]:
    """Compute ``{node_id: Position}`` for every placed node.

    Bit-for-bit reproducible for a given catalog and config.
    """
    with timed("Node layout"):
        ids, coords = base_positions(catalog, config)
        apply_repulsion(coords, config)
        index = {node_id: i for i, node_id in enumerate(ids)}
        apply_attraction(coords, index, catalog.connections, config)
        clamp(coords, catalog.map_size, config)

    logger.debug("Laid out %d node(s).", len(ids))
    return {
        node_id: Position(x=float(coords[i, 0]), y=float(coords[i, 1]))
        for i, node_id in enumerate(ids)
    }
