from __future__ import annotations

import datetime as dt

from src.db.models import Card
from src.scheduling.config import SchedulingConfig
from src.scheduling.due_selector import DueSelector
from src.scheduling.enums import CardStatus


NOW = dt.datetime(2025, 1, 10, 12, 0, tzinfo=dt.timezone.utc)


def _make_card(
    id_: int,
    next_review: dt.datetime,
    *,
    status: CardStatus = CardStatus.ACTIVE,
    failures: int = 0,
    successes: int = 0,
    created_at: dt.datetime | None = None,
) -> Card:
    return Card(
        id=id_,
        user_id=1,
        word=f"w{id_}",
        definition=f"d{id_}",
        status=status,
        interval=1,
        ease_factor=2.5,
        consecutive_correct=0,
        review_step=0,
        success_count=successes,
        failure_count=failures,
        next_review=next_review,
        created_at=created_at or NOW - dt.timedelta(days=10),
    )


def test_overdue_card_is_due_and_flagged():
    selector = DueSelector()
    card = _make_card(1, NOW - dt.timedelta(days=1))

    due = selector.select(cards=[card], reviewed_today=set(), now=NOW)

    assert [d.card.id for d in due] == [1]
    assert due[0].is_overdue is True
    assert due[0].days_since_created == 10


def test_later_today_is_due_but_not_overdue():
    selector = DueSelector()
    card = _make_card(1, NOW + dt.timedelta(hours=6))

    due = selector.select(cards=[card], reviewed_today=set(), now=NOW)

    assert len(due) == 1
    assert due[0].is_overdue is False


def test_tomorrow_is_not_due():
    selector = DueSelector()
    card = _make_card(1, NOW + dt.timedelta(days=1))

    assert selector.select(cards=[card], reviewed_today=set(), now=NOW) == []


def test_reviewed_today_and_inactive_cards_are_excluded():
    selector = DueSelector()
    reviewed = _make_card(1, NOW - dt.timedelta(days=2))
    paused = _make_card(2, NOW - dt.timedelta(days=2), status=CardStatus.PAUSED)
    completed = _make_card(3, NOW - dt.timedelta(days=2), status=CardStatus.COMPLETED)
    fresh = _make_card(4, NOW - dt.timedelta(days=2))

    due = selector.select(
        cards=[reviewed, paused, completed, fresh],
        reviewed_today={1},
        now=NOW,
    )

    assert [d.card.id for d in due] == [4]


def test_ordering_next_review_then_failures_then_age():
    selector = DueSelector()
    same_time = NOW - dt.timedelta(days=1)
    a = _make_card(1, same_time, failures=1, created_at=NOW - dt.timedelta(days=5))
    b = _make_card(2, same_time, failures=3, created_at=NOW - dt.timedelta(days=2))
    c = _make_card(3, same_time, failures=1, created_at=NOW - dt.timedelta(days=9))
    d = _make_card(4, NOW - dt.timedelta(days=3))

    due = selector.select(cards=[a, b, c, d], reviewed_today=set(), now=NOW)

    assert [x.card.id for x in due] == [4, 2, 3, 1]


def test_limit_truncates_after_ordering():
    selector = DueSelector()
    cards = [_make_card(i, NOW - dt.timedelta(days=i)) for i in range(1, 6)]

    due = selector.select(cards=cards, reviewed_today=set(), now=NOW, limit=2)

    assert [d.card.id for d in due] == [5, 4]


def test_failure_rate_annotation():
    selector = DueSelector()
    card = _make_card(1, NOW - dt.timedelta(days=1), failures=1, successes=3)

    due = selector.select(cards=[card], reviewed_today=set(), now=NOW)

    assert due[0].failure_rate == 0.25


def test_calendar_day_follows_configured_timezone():
    # 23:30 UTC on Jan 10 is already Jan 11 in Amsterdam.
    now = dt.datetime(2025, 1, 10, 23, 30, tzinfo=dt.timezone.utc)
    card = _make_card(1, dt.datetime(2025, 1, 11, 12, 0, tzinfo=dt.timezone.utc))

    utc_due = DueSelector().select(cards=[card], reviewed_today=set(), now=now)
    ams_due = DueSelector(SchedulingConfig(timezone="Europe/Amsterdam")).select(
        cards=[card], reviewed_today=set(), now=now
    )

    assert utc_due == []
    assert [d.card.id for d in ams_due] == [1]
