"""
Calendar-day helpers.

"Today", "reviewed today" and streak gaps are all calendar-day notions in
the learner's configured timezone, independent of time-of-day.
"""

from __future__ import annotations

import datetime as dt
from datetime import tzinfo
from typing import Tuple


def ensure_aware(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def local_date(value: dt.datetime, tz: tzinfo) -> dt.date:
    return ensure_aware(value).astimezone(tz).date()


def start_of_day(day: dt.date, tz: tzinfo) -> dt.datetime:
    return dt.datetime.combine(day, dt.time.min, tzinfo=tz)


def day_bounds(now: dt.datetime, tz: tzinfo) -> Tuple[dt.datetime, dt.datetime]:
    """Return ``[start, end)`` of the calendar day containing ``now``."""
    today = local_date(now, tz)
    return start_of_day(today, tz), start_of_day(today + dt.timedelta(days=1), tz)


def calendar_day_distance(earlier: dt.datetime, later: dt.datetime, tz: tzinfo) -> int:
    """Whole calendar days between two instants (0 on the same day)."""
    return abs((local_date(later, tz) - local_date(earlier, tz)).days)
