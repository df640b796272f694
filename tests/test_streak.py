from __future__ import annotations

import datetime as dt

from src.db.models import StreakState
from src.scheduling.config import SchedulingConfig
from src.scheduling.streak import StreakTracker, empty_streak


def _at(day: int, hour: int = 12, month: int = 1) -> dt.datetime:
    return dt.datetime(2024, month, day, hour, 0, tzinfo=dt.timezone.utc)


def _make_state(current: int, longest: int, last: dt.datetime | None) -> StreakState:
    return StreakState(
        user_id=1,
        current_streak=current,
        longest_streak=longest,
        last_review_date=last,
        streak_updated_at=last or _at(1),
    )


def test_first_activity_starts_streak():
    tracker = StreakTracker()
    state = tracker.record_activity(empty_streak(1, _at(1)), _at(1))

    assert state.current_streak == 1
    assert state.longest_streak == 1
    assert state.last_review_date == _at(1)


def test_next_day_increments():
    tracker = StreakTracker()
    state = tracker.record_activity(_make_state(4, 6, _at(1, hour=23)), _at(2, hour=0))

    assert state.current_streak == 5
    assert state.longest_streak == 6


def test_gap_of_two_days_resets_to_one():
    tracker = StreakTracker()
    state = tracker.record_activity(_make_state(9, 9, _at(1)), _at(3))

    assert state.current_streak == 1
    assert state.longest_streak == 9


def test_same_day_activity_is_idempotent_but_refreshes_timestamps():
    tracker = StreakTracker()
    state = _make_state(3, 5, _at(2, hour=8))

    tracker.record_activity(state, _at(2, hour=20))

    assert state.current_streak == 3
    assert state.longest_streak == 5
    assert state.last_review_date == _at(2, hour=20)
    assert state.streak_updated_at == _at(2, hour=20)


def test_longest_follows_current():
    tracker = StreakTracker()
    state = tracker.record_activity(_make_state(5, 5, _at(10)), _at(11))

    assert state.current_streak == 6
    assert state.longest_streak == 6


def test_calendar_day_uses_configured_timezone():
    # 22:30 and 23:30 UTC on Jan 1 are Jan 1 and Jan 2 in Amsterdam.
    tracker = StreakTracker(SchedulingConfig(timezone="Europe/Amsterdam"))
    last = _at(1, hour=22) + dt.timedelta(minutes=30)
    state = tracker.record_activity(_make_state(2, 2, last), last + dt.timedelta(hours=1))

    assert state.current_streak == 3
