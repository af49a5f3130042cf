"""
Database module for learner progress.

A single ``ProgressKV`` key/value table holds the two persisted records:

- ``skill-progress`` — JSON array of completed node ids.
- ``skill-streak``   — JSON object ``{lastCompletionDate, count}``.

``ProgressStore`` wraps one connection and (de)serialises those records.
It raises on any failure; callers decide whether storage is best-effort.
"""

import json
import logging
import os
import sqlite3
import time
from datetime import datetime, timezone
from typing import AbstractSet, Optional, Set

from constellation.models import StreakRecord

logger = logging.getLogger(__name__)

PROGRESS_KEY = "skill-progress"
STREAK_KEY = "skill-streak"

# =========================================================================
# Schema
# =========================================================================

_CREATE_PROGRESS_KV = """\
CREATE TABLE IF NOT EXISTS ProgressKV (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TIMESTAMP
);
"""


# =========================================================================
# Connection helper
# =========================================================================


def get_connection(db_path: str) -> sqlite3.Connection:
    """Return a new SQLite connection with WAL mode and row-factory enabled."""
    if db_path != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    return conn


def migrate_db(conn: sqlite3.Connection) -> None:
    """Create (or verify) the ``ProgressKV`` table."""
    conn.execute(_CREATE_PROGRESS_KV)
    conn.commit()


# =========================================================================
# Lock-retry helper
# =========================================================================

_SQLITE_LOCK_RETRIES = 5
_SQLITE_LOCK_BASE_DELAY = 0.1


def _retry_on_lock(fn, *args, **kwargs):  # type: ignore[no-untyped-def]
    """Wrap *fn* with SQLite-lock retry."""
    for attempt in range(1, _SQLITE_LOCK_RETRIES + 1):
        try:
            return fn(*args, **kwargs)
        except sqlite3.OperationalError as exc:
            if "locked" in str(exc).lower() and attempt < _SQLITE_LOCK_RETRIES:
                delay = _SQLITE_LOCK_BASE_DELAY * (2 ** (attempt - 1))
                logger.warning(
                    "SQLite locked (attempt %d/%d) — retrying in %.2fs",
                    attempt, _SQLITE_LOCK_RETRIES, delay,
                )
                time.sleep(delay)
            else:
                raise


# =========================================================================
# Raw key/value helpers
# =========================================================================


def get_value(conn: sqlite3.Connection, key: str) -> Optional[str]:
    """Return the stored text for *key*, or ``None``."""
    row = conn.execute(
        "SELECT value FROM ProgressKV WHERE key = ?", (key,)
    ).fetchone()
    return row["value"] if row else None


def set_value(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Insert or replace the text stored under *key*."""
    now = datetime.now(timezone.utc).isoformat()

    def _do_upsert() -> None:
        conn.execute(
            """
            INSERT INTO ProgressKV (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, now),
        )
        conn.commit()

    _retry_on_lock(_do_upsert)


def delete_value(conn: sqlite3.Connection, key: str) -> None:
    """Remove *key* if present."""
    conn.execute("DELETE FROM ProgressKV WHERE key = ?", (key,))
    conn.commit()


# =========================================================================
# Typed store
# =========================================================================


class ProgressStore:
    """Persistence for the completion set and the streak record."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn = get_connection(db_path)
        migrate_db(self._conn)
        logger.info("Progress store ready at %s", db_path)

    def load_progress(self) -> Set[str]:
        """Return the stored completed ids (empty set when absent).

        Raises:
            ValueError: the stored value is not a JSON array of strings.
        """
        raw = get_value(self._conn, PROGRESS_KEY)
        if raw is None:
            return set()
        data = json.loads(raw)
        if not isinstance(data, list) or not all(isinstance(x, str) for x in data):
            raise ValueError(f"{PROGRESS_KEY} is not a list of node ids")
        return set(data)

    def save_progress(self, completed: AbstractSet[str]) -> None:
        """Store *completed* as a sorted, deduplicated JSON array."""
        set_value(self._conn, PROGRESS_KEY, json.dumps(sorted(completed)))

    def load_streak(self) -> StreakRecord:
        """Return the stored streak (empty record when absent).

        Raises:
            ValueError: the stored value is not valid JSON.
            pydantic.ValidationError: the JSON does not match the record.
        """
        raw = get_value(self._conn, STREAK_KEY)
        if raw is None:
            return StreakRecord()
        return StreakRecord.model_validate(json.loads(raw))

    def save_streak(self, record: StreakRecord) -> None:
        """Store *record* under the streak key."""
        set_value(
            self._conn,
            STREAK_KEY,
            json.dumps(record.model_dump(by_alias=True)),
        )

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()
