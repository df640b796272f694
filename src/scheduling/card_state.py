"""
Card status state machine.

    ACTIVE --review--> ACTIVE | COMPLETED
    ACTIVE | COMPLETED | PAUSED --reactivate--> ACTIVE
    ACTIVE --pause--> PAUSED

Transitions mutate the given ``Card`` in place; callers persist it.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional, Sequence

from src.db.models import Card, ReviewEvent
from src.scheduling.config import SchedulingConfig
from src.scheduling.enums import CardStatus
from src.scheduling.errors import InvalidStateError
from src.scheduling.scheduler import SM2Result, SM2Scheduler


logger = logging.getLogger(__name__)


def first_interval(intervals: Sequence[int], config: Optional[SchedulingConfig] = None) -> int:
    config = config or SchedulingConfig()
    if intervals and intervals[0] and intervals[0] > 0:
        return int(intervals[0])
    return config.initial_interval


def new_card(
    *,
    owner_id: int,
    word: str,
    definition: str,
    schedule_intervals: Sequence[int],
    now: dt.datetime,
    config: Optional[SchedulingConfig] = None,
) -> Card:
    """Build a fresh ACTIVE card due one schedule step after creation."""
    config = config or SchedulingConfig()
    return Card(
        user_id=owner_id,
        word=word,
        definition=definition,
        status=CardStatus.ACTIVE,
        interval=config.initial_interval,
        ease_factor=config.initial_ease_factor,
        consecutive_correct=0,
        review_step=0,
        view_count=0,
        success_count=0,
        failure_count=0,
        last_reviewed=None,
        next_review=now + dt.timedelta(days=first_interval(schedule_intervals, config)),
        created_at=now,
        updated_at=now,
    )


def reaches_completion(result: SM2Result, config: SchedulingConfig) -> bool:
    return (
        result.consecutive_correct >= config.completion_min_consecutive
        and result.interval >= config.completion_min_interval
    )


def apply_review(
    card: Card,
    *,
    is_success: bool,
    quality: int,
    now: dt.datetime,
    scheduler: Optional[SM2Scheduler] = None,
) -> ReviewEvent:
    """
    Apply one review outcome to an ACTIVE card and return the event to log.

    Updates the SM-2 fields, counters, ``last_reviewed``/``next_review`` and
    moves the card to COMPLETED once it is well learned.
    """
    if card.status != CardStatus.ACTIVE:
        raise InvalidStateError(f"Card {card.id} is not ACTIVE")

    scheduler = scheduler or SM2Scheduler()
    result = scheduler.compute(card, quality)

    card.interval = result.interval
    card.ease_factor = result.ease_factor
    card.consecutive_correct = result.consecutive_correct
    card.view_count = (card.view_count or 0) + 1
    if is_success:
        card.success_count = (card.success_count or 0) + 1
    else:
        card.failure_count = (card.failure_count or 0) + 1
    card.last_reviewed = now
    card.next_review = now + dt.timedelta(days=result.interval)
    card.updated_at = now

    if reaches_completion(result, scheduler.config):
        card.status = CardStatus.COMPLETED
        logger.info(
            "Card %s completed (consecutive_correct=%s, interval=%s)",
            card.id,
            result.consecutive_correct,
            result.interval,
        )

    return ReviewEvent(
        card_id=card.id,
        user_id=card.user_id,
        is_success=is_success,
        quality=quality,
        created_at=now,
    )


def reactivate(card: Card, *, now: dt.datetime) -> None:
    """Put a card (back) into review: due now, outcome counters reset."""
    card.status = CardStatus.ACTIVE
    card.next_review = now
    card.last_reviewed = None
    card.success_count = 0
    card.failure_count = 0
    card.updated_at = now


def pause(card: Card, *, now: dt.datetime) -> bool:
    """Pause an ACTIVE card. Returns False when the card was not ACTIVE."""
    if card.status != CardStatus.ACTIVE:
        return False
    card.status = CardStatus.PAUSED
    card.updated_at = now
    return True
