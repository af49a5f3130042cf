"""
pytest suite for streak rules and the SQLite progress store.
"""

import json
import os
import sqlite3
import sys
from datetime import date

import pytest
from pydantic import ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from constellation import db
from constellation.models import StreakRecord
from constellation.streak import current_streak, record_completion

TODAY = date(2026, 3, 10)


# =========================================================================
# Test: Streak rules
# =========================================================================


class TestRecordCompletion:
    """Once-per-day streak increments."""

    def test_first_completion_starts_at_one(self):
        result = record_completion(StreakRecord(), TODAY)
        assert result.last_completion_date == "2026-03-10"
        assert result.count == 1

    def test_yesterday_increments(self):
        record = StreakRecord(last_completion_date="2026-03-09", count=3)
        assert record_completion(record, TODAY).count == 4

    def test_two_day_gap_resets(self):
        record = StreakRecord(last_completion_date="2026-03-08", count=3)
        result = record_completion(record, TODAY)
        assert result.count == 1
        assert result.last_completion_date == "2026-03-10"

    def test_same_day_is_noop(self):
        record = StreakRecord(last_completion_date="2026-03-10", count=5)
        assert record_completion(record, TODAY) == record

    def test_month_boundary(self):
        record = StreakRecord(last_completion_date="2026-02-28", count=2)
        assert record_completion(record, date(2026, 3, 1)).count == 3


class TestCurrentStreak:
    """Read-time expiry."""

    @pytest.mark.parametrize("last, expected", [
        ("2026-03-10", 4),
        ("2026-03-09", 4),
        ("2026-03-08", 0),
        ("", 0),
    ])
    def test_expiry(self, last, expected):
        record = StreakRecord(last_completion_date=last, count=4)
        assert current_streak(record, TODAY) == expected


# =========================================================================
# Test: Persistence
# =========================================================================


class TestProgressStore:
    """Round-trip and corruption behaviour of the key/value store."""

    def test_table_created(self, tmp_db):
        store = db.ProgressStore(tmp_db)
        store.close()
        conn = db.get_connection(tmp_db)
        tables = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
        conn.close()
        assert "ProgressKV" in {r[0] for r in tables}

    def test_empty_defaults(self, tmp_db):
        store = db.ProgressStore(tmp_db)
        assert store.load_progress() == set()
        assert store.load_streak() == StreakRecord()
        store.close()

    def test_progress_saved_sorted_and_deduplicated(self, tmp_db):
        store = db.ProgressStore(tmp_db)
        store.save_progress({"b", "a", "c"})
        raw = db.get_value(store._conn, db.PROGRESS_KEY)
        assert json.loads(raw) == ["a", "b", "c"]
        store.close()

        reopened = db.ProgressStore(tmp_db)
        assert reopened.load_progress() == {"a", "b", "c"}
        reopened.close()

    def test_streak_layout(self, tmp_db):
        store = db.ProgressStore(tmp_db)
        store.save_streak(StreakRecord(last_completion_date="2026-03-10", count=2))
        raw = json.loads(db.get_value(store._conn, db.STREAK_KEY))
        assert raw == {"lastCompletionDate": "2026-03-10", "count": 2}
        assert store.load_streak().count == 2
        store.close()

    def test_overwrite(self, tmp_db):
        store = db.ProgressStore(tmp_db)
        store.save_progress({"a"})
        store.save_progress(set())
        assert store.load_progress() == set()
        store.close()

    def test_corrupt_progress_raises(self, tmp_db):
        store = db.ProgressStore(tmp_db)
        db.set_value(store._conn, db.PROGRESS_KEY, "{oops")
        with pytest.raises(ValueError):
            store.load_progress()
        db.set_value(store._conn, db.PROGRESS_KEY, json.dumps({"a": 1}))
        with pytest.raises(ValueError):
            store.load_progress()
        store.close()

    def test_corrupt_streak_raises(self, tmp_db):
        store = db.ProgressStore(tmp_db)
        db.set_value(store._conn, db.STREAK_KEY, json.dumps({"count": "many"}))
        with pytest.raises(ValidationError):
            store.load_streak()
        store.close()

    def test_delete_value(self, tmp_db):
        conn = db.get_connection(tmp_db)
        db.migrate_db(conn)
        db.set_value(conn, "k", "v")
        db.delete_value(conn, "k")
        assert db.get_value(conn, "k") is None
        conn.close()

    def test_in_memory(self):
        store = db.ProgressStore(":memory:")
        store.save_progress({"x"})
        assert store.load_progress() == {"x"}
        store.close()

    def test_closed_store_raises_sqlite_error(self, tmp_db):
        store = db.ProgressStore(tmp_db)
        store.close()
        with pytest.raises(sqlite3.Error):
            store.save_progress({"a"})
