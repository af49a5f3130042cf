"""
Command-line interface for the Skill Constellation Engine.

Usage::

    python -m constellation.cli status
    python -m constellation.cli toggle what-is-blockchain
    python -m constellation.cli show rust-fundamentals
    python -m constellation.cli layout --out ./data/positions.json
    python -m constellation.cli export --out ./data/constellation.json
    python -m constellation.cli validate
    python -m constellation.cli reset --yes

Global flags (``--db``, ``--catalog``, ``--layout-config``, ``--log-level``)
override the ``CONSTELLATION_*`` environment variables.
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, List, Optional, get_args

from constellation.catalog import CatalogError, load_catalog
from constellation.config import LogLevel, Settings, load_layout_config, save_layout_config
from constellation.dag_validator import compute_metrics, validate_catalog
from constellation.session import ConstellationSession
from constellation.utils import setup_logging

logger = logging.getLogger(__name__)


# =========================================================================
# Helpers
# =========================================================================


def _write_json(path: str, payload: Any) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
    logger.info("📄 Written → %s", path)


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    updates = {}
    if args.db:
        updates["db_path"] = args.db
    if args.catalog:
        updates["catalog_path"] = args.catalog
    if args.log_level:
        updates["log_level"] = args.log_level.upper()
    if args.layout_config:
        updates["layout"] = load_layout_config(args.layout_config)
    return settings.model_copy(update=updates)


# =========================================================================
# Commands
# =========================================================================


def cmd_status(session: ConstellationSession, args: argparse.Namespace) -> int:
    progress = session.level_progress
    print(f"Level:     {progress.level.icon} {progress.level.name}")
    print(f"XP:        {session.earned_xp} / {session.total_xp}")
    if progress.next_level is not None:
        print(f"Next:      {progress.xp_to_next} XP to {progress.next_level.name}")
    print(f"Completed: {session.completed_count} / {len(session.catalog)}")
    print(f"Streak:    {session.streak} day(s)")
    print("-" * 40)
    for track in session.catalog.tracks:
        s = session.track_stats(track.id)
        print(
            f"{track.label:<10} {s.completed:>3}/{s.total:<3} "
            f"{s.earned_xp:>5}/{s.total_xp:<5} XP  {s.pct:>3}%"
        )
    return 0


def cmd_toggle(session: ConstellationSession, args: argparse.Namespace) -> int:
    if args.node_id not in session.catalog:
        logger.warning("'%s' is not in the catalog.", args.node_id)
    now_complete = session.toggle_complete(args.node_id)
    state = "completed" if now_complete else "not completed"
    print(f"{args.node_id}: {state} (xp={session.earned_xp}, level={session.level.name})")
    level_up = session.celebration.level_up
    if level_up is not None:
        print(f"🎉 Level up! {level_up.level.icon} {level_up.level.name}")
    return 0


def cmd_reset(session: ConstellationSession, args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to reset without --yes.")
        return 1
    session.reset()
    print("Progress reset.")
    return 0


def cmd_show(session: ConstellationSession, args: argparse.Namespace) -> int:
    node = session.catalog.get(args.node_id)
    if node is None:
        print(f"Unknown node '{args.node_id}'.")
        return 1
    print(f"{node.label} [{node.track}/{node.tier}] {node.xp} XP | {session.status(node.id)}")
    print(node.description)
    for item in node.details:
        print(f"  • {item}")
    if node.estimated_time:
        print(f"Time:     {node.estimated_time}")
    if node.rewards:
        print(f"Rewards:  {', '.join(node.rewards)}")
    prereqs = session.catalog.prerequisite_chain(node.id)
    unlocks = session.catalog.unlocks_next(node.id)
    print("Requires: " + (", ".join(f"{n.id} ({session.status(n.id)})" for n in prereqs) or "none"))
    print("Unlocks:  " + (", ".join(n.id for n in unlocks) or "none"))
    return 0


def cmd_layout(session: ConstellationSession, args: argparse.Namespace) -> int:
    positions = {k: p.model_dump() for k, p in session.positions.items()}
    _write_json(args.out, positions)
    return 0


def cmd_export(session: ConstellationSession, args: argparse.Namespace) -> int:
    _write_json(args.out, session.snapshot())
    return 0


# =========================================================================
# CLI
# =========================================================================


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m constellation.cli",
        description="Skill constellation progress tracker.",
    )
    parser.add_argument("--db", default=None, help="SQLite progress database.")
    parser.add_argument("--catalog", default=None, help="Catalog JSON file.")
    parser.add_argument("--layout-config", default=None, help="Layout config JSON file.")
    parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        choices=get_args(LogLevel),
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Level, XP, streak and per-track stats.")

    p = sub.add_parser("toggle", help="Toggle completion of a node.")
    p.add_argument("node_id")

    p = sub.add_parser("reset", help="Clear all progress.")
    p.add_argument("--yes", action="store_true")

    p = sub.add_parser("show", help="Show one node with its neighbours.")
    p.add_argument("node_id")

    p = sub.add_parser("layout", help="Write node positions as JSON.")
    p.add_argument("--out", default="./data/positions.json")

    p = sub.add_parser("export", help="Write the render snapshot as JSON.")
    p.add_argument("--out", default="./data/constellation.json")

    sub.add_parser("validate", help="Check catalog consistency.")

    p = sub.add_parser("save-layout-config", help="Dump layout settings to JSON.")
    p.add_argument("path")
    return parser.parse_args(argv)


_SESSION_COMMANDS = {
    "status": cmd_status,
    "toggle": cmd_toggle,
    "reset": cmd_reset,
    "show": cmd_show,
    "layout": cmd_layout,
    "export": cmd_export,
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry-point."""
    args = _parse_args(argv)
    try:
        settings = _settings_from_args(args)
    except (OSError, ValueError) as exc:
        setup_logging(args.log_level or "INFO")
        logger.error("Invalid settings: %s", exc)
        return 1
    setup_logging(settings.log_level)

    if args.command == "save-layout-config":
        save_layout_config(settings.layout, args.path)
        return 0

    try:
        if args.command == "validate":
            catalog = load_catalog(settings.catalog_path)
            problems = validate_catalog(catalog)
            for problem in problems:
                print(f"✗ {problem}")
            metrics = compute_metrics(catalog)
            print(json.dumps(metrics, indent=2))
            return 1 if problems else 0

        session = ConstellationSession.from_settings(settings)
    except CatalogError as exc:
        logger.error("%s", exc)
        return 1

    try:
        return _SESSION_COMMANDS[args.command](session, args)
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
