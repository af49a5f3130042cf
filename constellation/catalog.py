"""
Graph catalog: the immutable set of skill nodes, tracks, levels and edges.

Provides:
- ``Catalog`` — read-only container with an id index for O(1) lookups.
- ``build_catalog`` — derive ``unlocks`` and connections from the
  authored prerequisite lists.
- ``load_catalog`` — parse a catalog JSON file (the bundled one by default).

Only prerequisites are authored; the inverse ``unlocks`` lists and the
connection list are always derived here so the two can never drift.
"""

import json
import logging
import os
from collections import defaultdict
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from constellation.models import (
    Connection,
    Level,
    MapSize,
    SkillNode,
    TrackConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "data", "catalog.json"
)


# ---------------------------------------------------------------------------
# Custom exception
# ---------------------------------------------------------------------------


class CatalogError(ValueError):
    """Raised when a catalog file cannot be read or parsed.

    Attributes:
        path: The catalog file that failed.
        original: The underlying exception (may be ``None``).
    """

    def __init__(self, path: str, original: Optional[Exception] = None) -> None:
        self.path = path
        self.original = original
        super().__init__(f"invalid catalog {path}: {original}")


# =========================================================================
# Catalog container
# =========================================================================


class Catalog:
    """Immutable skill graph shared by every engine component."""

    def __init__(
        self,
        nodes: Sequence[SkillNode],
        tracks: Sequence[TrackConfig],
        levels: Sequence[Level],
        connections: Sequence[Connection] = (),
        map_size: Optional[MapSize] = None,
    ) -> None:
        self._nodes: Tuple[SkillNode, ...] = tuple(nodes)
        self._tracks: Tuple[TrackConfig, ...] = tuple(tracks)
        self._levels: Tuple[Level, ...] = tuple(levels)
        self._connections: Tuple[Connection, ...] = tuple(connections)
        self._map_size = map_size or MapSize()

        index: Dict[str, SkillNode] = {}
        for node in self._nodes:
            # First definition wins; duplicates are reported by the validator.
            index.setdefault(node.id, node)
        self._index = index
        self._track_index = {t.id: t for t in self._tracks}

    # -- collections ------------------------------------------------------

    @property
    def nodes(self) -> Tuple[SkillNode, ...]:
        return self._nodes

    @property
    def tracks(self) -> Tuple[TrackConfig, ...]:
        return self._tracks

    @property
    def levels(self) -> Tuple[Level, ...]:
        return self._levels

    @property
    def connections(self) -> Tuple[Connection, ...]:
        return self._connections

    @property
    def map_size(self) -> MapSize:
        return self._map_size

    @property
    def track_ids(self) -> List[str]:
        return [t.id for t in self._tracks]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[SkillNode]:
        return iter(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    # -- lookups ----------------------------------------------------------

    def get(self, node_id: str) -> Optional[SkillNode]:
        """Return the node for *node_id*, or ``None`` if it is unknown."""
        return self._index.get(node_id)

    def track(self, track_id: str) -> Optional[TrackConfig]:
        """Return the track config for *track_id*, or ``None``."""
        return self._track_index.get(track_id)

    def nodes_for_track(self, track_id: str) -> List[SkillNode]:
        """Return the nodes of one track in catalog order."""
        return [n for n in self._nodes if n.track == track_id]

    def prerequisite_chain(self, node_id: str) -> List[SkillNode]:
        """Direct prerequisites of *node_id* as nodes (unknown ids skipped)."""
        node = self.get(node_id)
        if node is None:
            return []
        return [self._index[p] for p in node.prerequisites if p in self._index]

    def unlocks_next(self, node_id: str) -> List[SkillNode]:
        """Nodes that list *node_id* as a prerequisite."""
        node = self.get(node_id)
        if node is None:
            return []
        return [self._index[u] for u in node.unlocks if u in self._index]

    def __repr__(self) -> str:
        return (
            f"Catalog(nodes={len(self._nodes)}, tracks={len(self._tracks)}, "
            f"connections={len(self._connections)})"
        )


# =========================================================================
# Construction
# =========================================================================


def derive_edges(
    nodes: Sequence[SkillNode],
) -> Tuple[List[SkillNode], List[Connection]]:
    """Fill in ``unlocks`` from prerequisites and build the connection list.

    Dependents are listed in catalog order. Connections are emitted per
    source node (catalog order), then per unlock.
    """
    dependents: Dict[str, List[str]] = defaultdict(list)
    for node in nodes:
        for prereq in node.prerequisites:
            dependents[prereq].append(node.id)

    linked = [
        node.model_copy(update={"unlocks": list(dependents.get(node.id, []))})
        for node in nodes
    ]

    known = {n.id for n in nodes}
    connections: List[Connection] = []
    for node in linked:
        for target in node.unlocks:
            connections.append(Connection(from_id=node.id, to_id=target))
    # Edges from ids missing in the catalog still mirror a prerequisite.
    for prereq, targets in dependents.items():
        if prereq not in known:
            for target in targets:
                connections.append(Connection(from_id=prereq, to_id=target))
    return linked, connections


def build_catalog(
    nodes: Sequence[SkillNode],
    tracks: Sequence[TrackConfig],
    levels: Sequence[Level],
    map_size: Optional[MapSize] = None,
) -> Catalog:
    """Build a :class:`Catalog` with derived ``unlocks`` and connections."""
    linked, connections = derive_edges(nodes)
    return Catalog(
        nodes=linked,
        tracks=tracks,
        levels=sorted(levels, key=lambda lv: lv.min_xp),
        connections=connections,
        map_size=map_size,
    )


def catalog_from_dict(data: Dict[str, Any]) -> Catalog:
    """Build a catalog from the parsed JSON document layout."""
    nodes = [SkillNode.model_validate(n) for n in data["nodes"]]
    tracks = [TrackConfig.model_validate(t) for t in data["tracks"]]
    levels = [Level.model_validate(lv) for lv in data["levels"]]
    map_size = MapSize.model_validate(data["map"]) if "map" in data else None
    return build_catalog(nodes, tracks, levels, map_size=map_size)


def load_catalog(path: Optional[str] = None) -> Catalog:
    """Load and link a catalog JSON file (bundled catalog by default).

    Raises:
        CatalogError: unreadable file, invalid JSON or schema mismatch.
    """
    path = path or DEFAULT_CATALOG_PATH
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        catalog = catalog_from_dict(data)
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValidationError) as exc:
        raise CatalogError(path, exc) from exc

    logger.info(
        "Loaded catalog %s: %d nodes, %d tracks, %d connections.",
        os.path.basename(path),
        len(catalog.nodes),
        len(catalog.tracks),
        len(catalog.connections),
    )
    return catalog
