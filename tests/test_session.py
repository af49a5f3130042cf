"""
pytest suite for the session state controller.

Storage is a temporary SQLite file; the calendar is a fixed clock.
"""

import json
import os
import sys
from datetime import date, timedelta

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from constellation import db
from constellation.config import Settings
from constellation.models import StreakRecord
from constellation.session import DEFAULT_ZOOM, ConstellationSession, open_store

from conftest import FixedClock


@pytest.fixture()
def store(tmp_db):
    s = db.ProgressStore(tmp_db)
    yield s
    s.close()


@pytest.fixture()
def session(chain_catalog, store, clock):
    return ConstellationSession(chain_catalog, store=store, today=clock)


# =========================================================================
# Test: Chain scenario
# =========================================================================


class TestChainScenario:
    """A -> B -> C, 50 XP each."""

    def test_full_scenario(self, session):
        assert session.status("a") == "available"
        assert session.status("b") == "locked"
        assert session.status("c") == "locked"

        assert session.toggle_complete("a") is True
        assert session.status("b") == "available"
        assert session.earned_xp == 50

        session.toggle_complete("b")
        assert session.status("c") == "available"
        assert session.earned_xp == 100

        # Completed wins over prerequisites, so B stays completed.
        assert session.toggle_complete("a") is False
        assert session.status("a") == "available"
        assert session.status("b") == "completed"
        assert session.status("c") == "available"
        assert session.earned_xp == 50
        assert session.completed == frozenset({"b"})

    def test_uncompleting_relocks_dependents(self, session):
        session.toggle_complete("a")
        assert session.status("b") == "available"
        assert session.toggle_complete("a") is False
        assert session.status("b") == "locked"
        assert session.status("c") == "locked"
        assert session.earned_xp == 0

    def test_derived_scalars(self, session):
        session.toggle_complete("a")
        session.toggle_complete("b")
        assert session.completed_count == 2
        assert session.total_xp == 150
        assert session.level.name == "Astronaut"
        assert session.next_level.name == "Pilot"
        assert session.track_stats("explorer").pct == 67

    def test_unknown_id_toggle(self, session):
        assert session.toggle_complete("ghost") is True
        assert session.completed_count == 0
        assert session.earned_xp == 0
        assert session.status("ghost") == "completed"


# =========================================================================
# Test: Persistence
# =========================================================================


class TestPersistence:
    """Every mutation is saved; corrupt data loads as empty."""

    def test_progress_survives_new_session(self, chain_catalog, tmp_db, clock):
        s1 = ConstellationSession(chain_catalog, store=db.ProgressStore(tmp_db), today=clock)
        s1.toggle_complete("a")
        s1.toggle_complete("b")
        s1.close()

        s2 = ConstellationSession(chain_catalog, store=db.ProgressStore(tmp_db), today=clock)
        assert s2.completed == frozenset({"a", "b"})
        assert s2.streak == 1
        s2.close()

    def test_reset_persists(self, chain_catalog, tmp_db, clock):
        s1 = ConstellationSession(chain_catalog, store=db.ProgressStore(tmp_db), today=clock)
        s1.toggle_complete("a")
        s1.select("a")
        s1.reset()
        assert s1.completed == frozenset()
        assert s1.selected_node is None
        s1.close()

        s2 = ConstellationSession(chain_catalog, store=db.ProgressStore(tmp_db), today=clock)
        assert s2.completed == frozenset()
        s2.close()

    def test_corrupt_progress_is_empty(self, chain_catalog, store, clock):
        db.set_value(store._conn, db.PROGRESS_KEY, "not json at all")
        db.set_value(store._conn, db.STREAK_KEY, "[1, 2]")
        session = ConstellationSession(chain_catalog, store=store, today=clock)
        assert session.completed == frozenset()
        assert session.streak_record == StreakRecord()

    def test_without_store(self, chain_catalog, clock):
        session = ConstellationSession(chain_catalog, today=clock)
        session.toggle_complete("a")
        assert session.earned_xp == 50
        assert session.streak == 1

    def test_save_failure_is_swallowed(self, chain_catalog, tmp_db, clock):
        store = db.ProgressStore(tmp_db)
        session = ConstellationSession(chain_catalog, store=store, today=clock)
        store.close()
        assert session.toggle_complete("a") is True
        assert session.earned_xp == 50

    def test_open_store_unavailable(self, tmp_path):
        blocker = tmp_path / "occupied"
        blocker.mkdir()
        assert open_store(str(blocker)) is None

    def test_from_settings(self, tmp_db):
        session = ConstellationSession.from_settings(Settings(db_path=tmp_db))
        assert len(session.catalog) == 66
        session.toggle_complete("what-is-blockchain")
        session.close()
        raw = json.loads(db.get_value(db.get_connection(tmp_db), db.PROGRESS_KEY))
        assert raw == ["what-is-blockchain"]


# =========================================================================
# Test: Streak through the session
# =========================================================================


class TestSessionStreak:
    """Streak recording is driven by completing toggles."""

    def test_multiple_completions_same_day(self, session):
        session.toggle_complete("a")
        session.toggle_complete("b")
        assert session.streak == 1

    def test_consecutive_days(self, chain_catalog, store):
        clock = FixedClock(date(2026, 3, 10))
        session = ConstellationSession(chain_catalog, store=store, today=clock)
        session.toggle_complete("a")
        clock.day += timedelta(days=1)
        session.toggle_complete("b")
        assert session.streak == 2
        assert store.load_streak().count == 2

    def test_uncompleting_does_not_record(self, chain_catalog, store):
        clock = FixedClock(date(2026, 3, 10))
        session = ConstellationSession(chain_catalog, store=store, today=clock)
        session.toggle_complete("a")
        clock.day += timedelta(days=1)
        session.toggle_complete("a")
        assert session.streak_record.last_completion_date == "2026-03-10"

    def test_expires_on_read(self, chain_catalog, store):
        store.save_streak(StreakRecord(last_completion_date="2026-03-09", count=3))
        clock = FixedClock(date(2026, 3, 10))
        session = ConstellationSession(chain_catalog, store=store, today=clock)
        assert session.streak == 3
        clock.day = date(2026, 3, 12)
        assert session.streak == 0
        assert session.streak_record.count == 3

    def test_continues_from_yesterday(self, chain_catalog, store):
        store.save_streak(StreakRecord(last_completion_date="2026-03-09", count=3))
        session = ConstellationSession(chain_catalog, store=store,
                                       today=FixedClock(date(2026, 3, 10)))
        session.toggle_complete("a")
        assert session.streak == 4


# =========================================================================
# Test: Celebration and UI state
# =========================================================================


class TestCelebration:
    """Completion feedback."""

    def test_plain_completion(self, session):
        session.toggle_complete("a")
        assert session.celebration.completed_node_id == "a"
        assert session.celebration.level_up is None

    def test_level_up(self, session):
        session.toggle_complete("a")
        session.toggle_complete("b")
        level_up = session.celebration.level_up
        assert level_up is not None
        assert level_up.level.name == "Astronaut"
        assert level_up.xp_gained == 50

    def test_dismiss(self, session):
        session.toggle_complete("a")
        session.dismiss_celebration()
        assert session.celebration.completed_node_id is None


class TestUiState:
    """Selection, filtering and viewport pass-through."""

    def test_select_toggles(self, session):
        assert session.select("a") == "a"
        assert session.select("b") == "b"
        assert session.select("b") is None

    def test_track_filter(self, session):
        assert len(session.filtered_nodes) == 3
        session.set_active_track("builder")
        assert session.filtered_nodes == []
        session.set_active_track("all")
        assert len(session.filtered_nodes) == 3
        with pytest.raises(ValueError):
            session.set_active_track("pirate")

    def test_viewport(self, session):
        assert session.viewport.zoom == DEFAULT_ZOOM
        session.set_viewport(2.0, 10, -5)
        assert (session.viewport.zoom, session.viewport.pan_x, session.viewport.pan_y) == (2.0, 10, -5)
        with pytest.raises(ValueError):
            session.set_viewport(0, 0, 0)

    def test_zoom_to_track_and_fit(self, session):
        session.zoom_to_track("builder")
        assert session.active_track == "builder"
        assert session.viewport.zoom == 1.0
        assert session.viewport.pan_x == -(820 - 550)
        assert session.viewport.pan_y == -(230 - 475)
        session.zoom_to_fit()
        assert session.active_track == "all"
        assert session.viewport.zoom == DEFAULT_ZOOM
        assert session.viewport.pan_x == 0.0


# =========================================================================
# Test: Positions and snapshot
# =========================================================================


class TestViews:
    """Cached layout, completed tracks and the render snapshot."""

    def test_positions_cached_and_read_only(self, session):
        first = session.positions
        assert session.positions is first
        with pytest.raises(TypeError):
            first["a"] = None  # type: ignore[index]

    def test_completed_tracks(self, session):
        for node_id in ("a", "b", "c"):
            session.toggle_complete(node_id)
        assert session.completed_tracks() == ["explorer"]

    def test_snapshot(self, session):
        session.toggle_complete("a")
        snap = session.snapshot()
        json.dumps(snap)
        by_id = {n["id"]: n for n in snap["nodes"]}
        assert by_id["a"]["status"] == "completed"
        assert by_id["b"]["status"] == "available"
        assert by_id["a"]["size"] == 32
        assert by_id["a"]["x"] == 142.0
        assert snap["connections"] == [{"from": "a", "to": "b"}, {"from": "b", "to": "c"}]
        assert snap["earned_xp"] == 50
        assert snap["xp_to_next"] == 50
        assert snap["streak"] == 1
        assert snap["tracks"]["explorer"]["completed"] == 1
