"""
Catalog validation: edge consistency, cycle detection, and graph metrics.

Uses ``networkx.DiGraph`` for cycle detection, topological ordering and
longest-path depth. These checks guard the authored catalog at test time
and from the CLI ``validate`` command; the session never runs them.
"""

import logging
from collections import Counter
from typing import Any, Dict, List

import networkx as nx

from constellation.catalog import Catalog

logger = logging.getLogger(__name__)


# =========================================================================
# Graph construction
# =========================================================================


def build_graph(catalog: Catalog) -> nx.DiGraph:
    """Return a ``DiGraph`` of prerequisite edges (prereq -> dependent)."""
    G = nx.DiGraph()
    for node in catalog.nodes:
        G.add_node(node.id, track=node.track, tier=node.tier, xp=node.xp)
    for node in catalog.nodes:
        for prereq in node.prerequisites:
            G.add_edge(prereq, node.id)
    return G


# =========================================================================
# Validation
# =========================================================================


def validate_dag(catalog: Catalog) -> bool:
    """Verify that prerequisites form a DAG (topological sort succeeds)."""
    try:
        list(nx.topological_sort(build_graph(catalog)))
        return True
    except nx.NetworkXUnfeasible:
        return False


def find_cycles(catalog: Catalog) -> List[List[str]]:
    """Return every elementary cycle as a list of node ids."""
    return [list(c) for c in nx.simple_cycles(build_graph(catalog))]


def validate_catalog(catalog: Catalog) -> List[str]:
    """Return a list of human-readable problems (empty when consistent).

    Checks:
    - duplicate node ids, unknown tracks, self-prerequisites
    - prerequisites that name no node
    - ``unlocks`` / ``prerequisites`` bidirectional consistency
    - connections mirroring exactly the prerequisite relation
    - acyclicity
    - level thresholds starting at 0 and strictly increasing
    """
    problems: List[str] = []
    known_tracks = set(catalog.track_ids)

    counts = Counter(n.id for n in catalog.nodes)
    for node_id, count in counts.items():
        if count > 1:
            problems.append(f"duplicate node id '{node_id}' ({count}x)")

    for node in catalog.nodes:
        if node.track not in known_tracks:
            problems.append(f"'{node.id}' belongs to unknown track '{node.track}'")
        if node.id in node.prerequisites:
            problems.append(f"'{node.id}' lists itself as a prerequisite")
        for prereq in node.prerequisites:
            other = catalog.get(prereq)
            if other is None:
                problems.append(f"'{node.id}' requires unknown node '{prereq}'")
            elif node.id not in other.unlocks:
                problems.append(
                    f"'{prereq}' is a prerequisite of '{node.id}' "
                    f"but does not unlock it"
                )
        for target in node.unlocks:
            other = catalog.get(target)
            if other is None:
                problems.append(f"'{node.id}' unlocks unknown node '{target}'")
            elif node.id not in other.prerequisites:
                problems.append(
                    f"'{node.id}' unlocks '{target}' "
                    f"but is not among its prerequisites"
                )

    prereq_edges = {
        (p, n.id) for n in catalog.nodes for p in n.prerequisites
    }
    conn_edges = {(c.from_id, c.to_id) for c in catalog.connections}
    for src, tgt in sorted(conn_edges - prereq_edges):
        problems.append(f"connection {src} -> {tgt} has no prerequisite")
    for src, tgt in sorted(prereq_edges - conn_edges):
        problems.append(f"prerequisite {src} -> {tgt} has no connection")

    if not validate_dag(catalog):
        for cycle in find_cycles(catalog):
            problems.append("cycle: " + " -> ".join(cycle + cycle[:1]))

    thresholds = [lv.min_xp for lv in catalog.levels]
    if thresholds and thresholds[0] != 0:
        problems.append(f"lowest level threshold is {thresholds[0]}, expected 0")
    for prev, cur in zip(thresholds, thresholds[1:]):
        if cur <= prev:
            problems.append(f"level thresholds not strictly increasing: {prev}, {cur}")

    if problems:
        logger.warning("Catalog validation found %d problem(s).", len(problems))
    else:
        logger.info("Catalog is consistent (%d nodes).", len(catalog.nodes))
    return problems


# =========================================================================
# Metrics
# =========================================================================


def topological_order(catalog: Catalog) -> List[str]:
    """Return a study order where every node follows its prerequisites.

    Ties are broken by catalog order so the result is stable.
    """
    rank = {n.id: i for i, n in enumerate(catalog.nodes)}
    G = build_graph(catalog)
    return list(
        nx.lexicographical_topological_sort(
            G, key=lambda node_id: rank.get(node_id, len(rank))
        )
    )


def compute_metrics(catalog: Catalog) -> Dict[str, Any]:
    """Compute graph summary metrics.

    Returns dict with: total_nodes, total_edges, roots, leaves,
    avg_out_degree, max_depth, is_dag, nodes_per_track.
    """
    G = build_graph(catalog)
    total_edges = G.number_of_edges()
    n_nodes = G.number_of_nodes()

    roots = [n for n in G.nodes if G.in_degree(n) == 0]
    leaves = [n for n in G.nodes if G.out_degree(n) == 0]
    avg_out = total_edges / n_nodes if n_nodes > 0 else 0.0

    is_dag = nx.is_directed_acyclic_graph(G)
    if total_edges > 0 and is_dag:
        max_depth = nx.dag_longest_path_length(G)
    else:
        max_depth = 0

    per_track = Counter(n.track for n in catalog.nodes)
    return {
        "total_nodes": len(catalog.nodes),
        "total_edges": total_edges,
        "roots": roots,
        "leaves": leaves,
        "avg_out_degree": round(avg_out, 4),
        "max_depth": max_depth,
        "is_dag": is_dag,
        "nodes_per_track": {t: per_track.get(t, 0) for t in catalog.track_ids},
    }
