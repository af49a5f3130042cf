"""
Calendar-day streak rules.

A streak counts consecutive days with at least one completion. Recording
is idempotent within a day; expiry is evaluated when the streak is read,
never written back.
"""

from datetime import date, timedelta

from constellation.models import StreakRecord


def _day(d: date) -> str:
    return d.isoformat()


def record_completion(record: StreakRecord, today: date) -> StreakRecord:
    """Return the streak after a completion on *today*."""
    today_str = _day(today)
    if record.last_completion_date == today_str:
        return record
    yesterday_str = _day(today - timedelta(days=1))
    if record.last_completion_date == yesterday_str:
        count = record.count + 1
    else:
        count = 1
    return StreakRecord(last_completion_date=today_str, count=count)


def current_streak(record: StreakRecord, today: date) -> int:
    """Stored count if the last completion was today or yesterday, else 0."""
    if record.last_completion_date in (_day(today), _day(today - timedelta(days=1))):
        return record.count
    return 0
