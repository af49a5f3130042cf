import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from constellation.catalog import load_catalog
from constellation.dag_validator import compute_metrics, topological_order, validate_catalog
from constellation.layout import compute_node_positions

CATALOG_PATH = sys.argv[1] if len(sys.argv) > 1 else None


def verify():
    catalog = load_catalog(CATALOG_PATH)
    problems = validate_catalog(catalog)
    metrics = compute_metrics(catalog)
    positions = compute_node_positions(catalog)

    # Closest pair after relaxation
    ids = list(positions)
    closest = None
    for i, a in enumerate(ids):
        for b in ids[i + 1:]:
            pa, pb = positions[a], positions[b]
            d = ((pa.x - pb.x) ** 2 + (pa.y - pb.y) ** 2) ** 0.5
            if closest is None or d < closest[0]:
                closest = (d, a, b)

    print("-" * 40)
    print("CATALOG VERIFICATION REPORT")
    print("-" * 40)
    print(f"Nodes:       {metrics['total_nodes']}")
    print(f"Edges:       {metrics['total_edges']}")
    print(f"Roots:       {', '.join(metrics['roots'])}")
    print(f"Max depth:   {metrics['max_depth']}")
    print(f"Placed:      {len(positions)}/{len(catalog)}")
    if closest is not None:
        print(f"Closest:     {closest[1]} <-> {closest[2]} ({closest[0]:.1f}px)")
    print("\nPer track:")
    for track_id, count in metrics["nodes_per_track"].items():
        print(f"  {track_id:<10} {count}")
    print("\nFirst 5 in study order:")
    for node_id in topological_order(catalog)[:5]:
        print(f"  {node_id}")
    print(f"\nProblems:    {len(problems)}")
    for p in problems:
        print(f"  ✗ {p}")
    print("-" * 40)
    return 1 if problems else 0


if __name__ == "__main__":
    sys.exit(verify())
