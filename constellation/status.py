"""
Status resolver: completed / available / locked for each node.
"""

from typing import AbstractSet, Dict

from constellation.catalog import Catalog
from constellation.models import NodeStatus


def node_status(
    catalog: Catalog,
    node_id: str,
    completed: AbstractSet[str],
) -> NodeStatus:
    """Resolve the unlock state of *node_id* given the completed ids.

    Unknown ids resolve to ``"locked"`` so stale references from a UI
    never raise.
    """
    if node_id in completed:
        return "completed"
    node = catalog.get(node_id)
    if node is None:
        return "locked"
    if all(p in completed for p in node.prerequisites):
        return "available"
    return "locked"


def statuses(catalog: Catalog, completed: AbstractSet[str]) -> Dict[str, NodeStatus]:
    """Return ``{node_id: status}`` for every node in catalog order."""
    return {n.id: node_status(catalog, n.id, completed) for n in catalog.nodes}
