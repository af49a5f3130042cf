"""Shared fixtures: synthetic catalogs and a bundled-catalog handle."""

import os
import sys
from datetime import date

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from constellation.catalog import build_catalog, load_catalog
from constellation.models import Level, MapSize, Quadrant, SkillNode, TrackConfig


LEVELS = [
    Level(name="Cadet", min_xp=0),
    Level(name="Astronaut", min_xp=100),
    Level(name="Pilot", min_xp=150),
]

TRACKS = [
    TrackConfig(id="explorer", label="Explorer", xp_per_module=50,
                quadrant=Quadrant(cx=280, cy=230)),
    TrackConfig(id="builder", label="Builder", xp_per_module=100,
                quadrant=Quadrant(cx=820, cy=230)),
]


def make_node(node_id, prerequisites=(), xp=50, tier="foundation",
              track="explorer", position=0):
    return SkillNode(
        id=node_id,
        label=node_id.upper(),
        xp=xp,
        tier=tier,
        track=track,
        position=position,
        prerequisites=list(prerequisites),
    )


class FixedClock:
    """Callable ``today`` whose date tests can move."""

    def __init__(self, day: date) -> None:
        self.day = day

    def __call__(self) -> date:
        return self.day


@pytest.fixture()
def chain_catalog():
    """A -> B -> C, 50 XP each, all in the explorer track."""
    nodes = [
        make_node("a", position=0),
        make_node("b", ["a"], tier="core", position=1),
        make_node("c", ["b"], tier="advanced", position=2),
    ]
    return build_catalog(nodes, TRACKS, LEVELS, map_size=MapSize(width=1100, height=950))


@pytest.fixture(scope="session")
def bundled_catalog():
    """The shipped 66-node catalog."""
    return load_catalog()


@pytest.fixture()
def clock():
    return FixedClock(date(2026, 3, 10))


@pytest.fixture()
def tmp_db(tmp_path):
    """Return a DB path inside a temporary directory."""
    return str(tmp_path / "test_progress.db")
