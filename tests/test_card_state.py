from __future__ import annotations

import datetime as dt

import pytest

from src.db.models import Card
from src.scheduling.card_state import apply_review, new_card, pause, reactivate
from src.scheduling.enums import CardStatus
from src.scheduling.errors import InvalidStateError


NOW = dt.datetime(2025, 3, 10, 9, 0, tzinfo=dt.timezone.utc)


def _make_card(**overrides) -> Card:
    fields = dict(
        id=7,
        user_id=1,
        word="fiets",
        definition="bicycle",
        status=CardStatus.ACTIVE,
        interval=1,
        ease_factor=2.5,
        consecutive_correct=0,
        review_step=0,
        view_count=0,
        success_count=0,
        failure_count=0,
        last_reviewed=None,
        next_review=NOW,
        created_at=NOW - dt.timedelta(days=3),
    )
    fields.update(overrides)
    return Card(**fields)


def test_new_card_is_due_one_schedule_step_later():
    card = new_card(
        owner_id=1,
        word="boek",
        definition="book",
        schedule_intervals=[2, 5, 10],
        now=NOW,
    )

    assert card.status == CardStatus.ACTIVE
    assert card.review_step == 0
    assert card.interval == 1
    assert card.ease_factor == 2.5
    assert card.consecutive_correct == 0
    assert card.next_review == NOW + dt.timedelta(days=2)
    assert card.last_reviewed is None


def test_new_card_with_empty_schedule_uses_initial_interval():
    card = new_card(owner_id=1, word="boek", definition="book", schedule_intervals=[], now=NOW)
    assert card.next_review == NOW + dt.timedelta(days=1)


def test_apply_review_success_updates_counters_and_due_date():
    card = _make_card()
    event = apply_review(card, is_success=True, quality=5, now=NOW)

    assert card.success_count == 1
    assert card.failure_count == 0
    assert card.view_count == 1
    assert card.last_reviewed == NOW
    assert card.next_review == NOW + dt.timedelta(days=card.interval)
    assert card.review_step == 0
    assert event.card_id == 7
    assert event.user_id == 1
    assert event.is_success is True
    assert event.quality == 5
    assert event.created_at == NOW


def test_apply_review_failure_counts_failure():
    card = _make_card(interval=16, ease_factor=2.7, consecutive_correct=3)
    apply_review(card, is_success=False, quality=0, now=NOW)

    assert card.failure_count == 1
    assert card.interval == 1
    assert card.consecutive_correct == 0
    assert card.ease_factor == 2.5
    assert card.status == CardStatus.ACTIVE


def test_card_completes_when_well_learned():
    card = _make_card(interval=60, ease_factor=2.5, consecutive_correct=4)
    apply_review(card, is_success=True, quality=4, now=NOW)

    assert card.consecutive_correct == 5
    assert card.interval == 150
    assert card.status == CardStatus.COMPLETED


def test_card_with_long_interval_but_short_streak_stays_active():
    card = _make_card(interval=200, ease_factor=2.5, consecutive_correct=2)
    apply_review(card, is_success=True, quality=4, now=NOW)

    assert card.interval >= 90
    assert card.consecutive_correct == 3
    assert card.status == CardStatus.ACTIVE


@pytest.mark.parametrize("status", [CardStatus.COMPLETED, CardStatus.PAUSED])
def test_reviewing_inactive_card_is_rejected(status):
    card = _make_card(status=status)
    with pytest.raises(InvalidStateError):
        apply_review(card, is_success=True, quality=4, now=NOW)
    assert card.view_count == 0


def test_reactivate_resets_outcome_counters():
    card = _make_card(
        status=CardStatus.COMPLETED,
        success_count=6,
        failure_count=2,
        last_reviewed=NOW - dt.timedelta(days=100),
        next_review=NOW + dt.timedelta(days=150),
        interval=150,
    )
    reactivate(card, now=NOW)

    assert card.status == CardStatus.ACTIVE
    assert card.next_review == NOW
    assert card.last_reviewed is None
    assert card.success_count == 0
    assert card.failure_count == 0
    assert card.interval == 150


def test_pause_only_affects_active_cards():
    active = _make_card()
    completed = _make_card(status=CardStatus.COMPLETED)

    assert pause(active, now=NOW) is True
    assert active.status == CardStatus.PAUSED
    assert pause(completed, now=NOW) is False
    assert completed.status == CardStatus.COMPLETED
